# tests/__init__.py

"""
Warehouse Ledger API 테스트 스위트 패키지입니다.

- `test_main.py`: 루트, 헬스 체크, 예외 처리기 등록
- `domains/`: 도메인별(usr, inv) 테스트 모듈 (`test_<domain>_..._n.py`)
- `conftest.py`: 테스트 DB 엔진/세션, 역할별 사용자, 인증 클라이언트 픽스처
"""

__title__ = "Warehouse Ledger API Tests"
__all__ = []
