# app/core/__init__.py

"""
FastAPI 애플리케이션의 핵심 구성 요소 패키지입니다.

- `config.py`: 애플리케이션의 설정 및 환경 변수 관리 (Pydantic Settings).
- `database.py`: 데이터베이스 연결, 세션 관리 (SQLModel 및 AsyncSQLAlchemy).
- `exceptions.py`: 재고 원장 예외 계층과 FastAPI 예외 처리기.
- `security.py`: 사용자 인증, 권한 부여, 비밀번호 해싱 등 보안 관련 유틸리티.
- `dependencies.py`: FastAPI의 의존성 주입 시스템에서 사용될 공통 의존성 함수들.
- `crud_base.py`: 공통 CRUD 기본 클래스.
"""

__title__ = "Warehouse Ledger Core"
__description__ = "Core components for the Warehouse Ledger FastAPI application."
__version__ = "0.1.0"
__all__ = []
