# app/domains/inv/__init__.py

"""
FastAPI 애플리케이션의 'inv' 도메인 패키지입니다.

창고 재고 거래 원장(거래 헤더 + 상세 라인)을 관리합니다.
모든 재고 수치(현재고, 입고예정, 출고예정, 미래재고)는 원장에서 파생되며 따로 저장하지 않습니다.

주요 서브모듈:
- `models.py`: transaction_header / transaction_detail 테이블과 거래 유형/상태 Enum.
- `policy.py`: 거래 유형별 허용 상태와 다음 단계 상태 (상태 정책).
- `schemas.py`: 요청/응답 Pydantic 모델과 스냅샷, 실사 스키마.
- `crud.py`: 참조번호 발급, 거래 생성(이동 입고 미러 포함), 수정, 진행, 삭제.
- `snapshot.py`: 원장 누적으로 품목/창고별 재고 스냅샷 계산.
- `counts.py`: 재고 실사 차이 계산과 조정 거래 생성.
- `reports.py`: 품목별/창고별/음수 재고 보고서.
- `routers.py`: FastAPI API 엔드포인트 정의.
"""

__title__ = "Warehouse Ledger Inventory Domain"
__description__ = "Manages the inventory transaction ledger, snapshots and physical counts."
__version__ = "0.1.0"
__all__ = []
