# app/domains/inv/policy.py

"""
거래 유형별 상세 라인 상태의 유효성과 다음 단계 상태를 정의하는 상태 정책 모듈입니다.

상태 전이는 Pending -> (유형별 종결 상태) 한 단계뿐이며, 전이표는 데이터로 보관합니다.
새 거래 유형을 추가할 때는 VALID_STATUSES 와 NEXT_STATUS 에 함께 등록해야 합니다.

| 유형       | 허용 상태            | 다음(종결) 상태 |
|------------|----------------------|-----------------|
| Inbound    | Pending, Received    | Received        |
| Outbound   | Pending, Shipped     | Shipped         |
| Adjustment | Pending, Completed   | Completed       |
| (미등록)   | 모든 상태            | 없음            |
"""

from typing import Dict, FrozenSet, Optional, Union

from app.core.exceptions import ValidationError
from app.domains.inv.models import TransactionStatus, TransactionType

VALID_STATUSES: Dict[TransactionType, FrozenSet[TransactionStatus]] = {
    TransactionType.INBOUND: frozenset({TransactionStatus.PENDING, TransactionStatus.RECEIVED}),
    TransactionType.OUTBOUND: frozenset({TransactionStatus.PENDING, TransactionStatus.SHIPPED}),
    TransactionType.ADJUSTMENT: frozenset({TransactionStatus.PENDING, TransactionStatus.COMPLETED}),
}

NEXT_STATUS: Dict[TransactionType, TransactionStatus] = {
    TransactionType.INBOUND: TransactionStatus.RECEIVED,
    TransactionType.OUTBOUND: TransactionStatus.SHIPPED,
    TransactionType.ADJUSTMENT: TransactionStatus.COMPLETED,
}


def coerce_transaction_type(value: Union[TransactionType, str, None]) -> Optional[TransactionType]:
    """문자열을 TransactionType 으로 변환합니다. 등록되지 않은 값이면 None."""
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(value)
    except ValueError:
        return None


def coerce_status(value: Union[TransactionStatus, str, None]) -> Optional[TransactionStatus]:
    if isinstance(value, TransactionStatus):
        return value
    try:
        return TransactionStatus(value)
    except ValueError:
        return None


def is_status_valid(
    status: Union[TransactionStatus, str],
    transaction_type: Union[TransactionType, str],
) -> bool:
    """
    주어진 상태가 거래 유형에 허용되는지 확인합니다.
    미등록 유형은 모든 상태를 허용하고, 미등록 상태는 등록된 어떤 유형에서도 허용되지 않습니다.
    """
    tx_type = coerce_transaction_type(transaction_type)
    if tx_type is None:
        return True
    tx_status = coerce_status(status)
    return tx_status is not None and tx_status in VALID_STATUSES[tx_type]


def get_next_status(transaction_type: Union[TransactionType, str]) -> Optional[TransactionStatus]:
    """'다음 단계 진행'에서 Pending 라인이 넘어갈 상태. 미등록 유형이면 None."""
    tx_type = coerce_transaction_type(transaction_type)
    if tx_type is None:
        return None
    return NEXT_STATUS[tx_type]


def validate_status(
    status: Union[TransactionStatus, str],
    transaction_type: Union[TransactionType, str],
    *,
    field: str = "status",
) -> None:
    """허용되지 않는 상태면 ValidationError 를 발생시킵니다. 쓰기 전에 호출해야 합니다."""
    if not is_status_valid(status, transaction_type):
        status_value = getattr(status, "value", status)
        type_value = getattr(transaction_type, "value", transaction_type)
        raise ValidationError(
            f'Status "{status_value}" is not allowed for {type_value} transaction.',
            field=field,
            value=status_value,
        )
