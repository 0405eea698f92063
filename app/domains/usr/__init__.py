# app/domains/usr/__init__.py

"""
FastAPI 애플리케이션의 'usr' 도메인 패키지입니다.

재고 원장 쓰기 권한을 판정하는 정책 계층 역할을 합니다.
시스템 사용자와 역할(UserRole), 그리고 인증(JWT 발급)을 관리합니다.

주요 서브모듈:
- `models.py`: 사용자 테이블에 매핑되는 SQLModel 정의와 UserRole Enum.
- `schemas.py`: 사용자 생성/조회 및 인증 토큰 스키마.
- `crud.py`: 사용자 생성(비밀번호 해싱)과 인증 로직.
- `routers.py`: 로그인 및 사용자 관리 엔드포인트.
"""

__title__ = "Warehouse Ledger User Domain"
__description__ = "Manages users and roles, and handles authentication."
__version__ = "0.1.0"
__all__ = []
