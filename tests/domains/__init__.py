# tests/domains/__init__.py

"""
도메인별 테스트 모듈 패키지입니다.

- usr: 인증과 사용자 관리
- inv: 상태 정책, 거래/참조번호/이동 미러, 재고 스냅샷과 보고서, 재고 실사
"""

__title__ = "Warehouse Ledger Domain Tests"
__all__ = []
