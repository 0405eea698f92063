# app/domains/inv/snapshot.py

"""
원장(ledger)에서 품목/창고별 재고 스냅샷을 계산하는 모듈입니다.

스냅샷은 저장하지 않고 매번 원장에서 파생합니다.
DB 에서는 창고 + 기준일로 범위를 좁혀 (품목, 일자, 유형, 상태, 방향, 재고구분) 단위로 합계를 내고,
누적(fold)은 Python 에서 일자 순으로 수행합니다.

| 유형       | 상태              | 반영 버킷                                   |
|------------|-------------------|---------------------------------------------|
| Inbound    | Received          | 현재고 +q                                   |
| Inbound    | Pending           | 입고예정 +q                                 |
| Outbound   | Shipped           | 현재고 -q                                   |
| Outbound   | Pending           | 출고예정 +q                                 |
| Adjustment | Completed         | 현재고 ±q (adjustment_direction)            |
| Adjustment | Pending           | 증가 -> 입고예정 +q, 감소 -> 출고예정 +q    |

미래재고 = 현재고 + 입고예정 - 출고예정
"""

import logging
from collections import OrderedDict
from datetime import date
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.exceptions import store_errors
from app.domains.inv import models as inv_models
from app.domains.inv.policy import coerce_status, coerce_transaction_type
from app.domains.inv.schemas import BucketQuantities, InventorySnapshotRow

logger = logging.getLogger(__name__)

ON_HAND = "on_hand"
INBOUND = "inbound"
SCHEDULED_OUTBOUND = "scheduled_outbound"
BUCKETS = (ON_HAND, INBOUND, SCHEDULED_OUTBOUND)

SUB_STATUS_FIELDS = {
    inv_models.InventoryStatus.STOCK.value: "stock",
    inv_models.InventoryStatus.CONSIGNMENT.value: "consignment",
    inv_models.InventoryStatus.HOLD.value: "hold",
}


class Movement(NamedTuple):
    """DB 에서 집계된 원장 이동 한 묶음"""
    warehouse: str
    item_name: str
    transaction_date: date
    transaction_type: str
    status: str
    adjustment_direction: str
    inventory_status: str
    quantity: int


def movement_effect(
    transaction_type: str,
    status: str,
    adjustment_direction: Optional[str],
    quantity: int,
) -> Dict[str, int]:
    """한 이동이 각 버킷에 더하는 값. 해당 없는 조합이면 빈 dict."""
    tx_type = coerce_transaction_type(transaction_type)
    tx_status = coerce_status(status)
    T = inv_models.TransactionType
    S = inv_models.TransactionStatus

    if tx_type is T.INBOUND:
        if tx_status is S.RECEIVED:
            return {ON_HAND: quantity}
        if tx_status is S.PENDING:
            return {INBOUND: quantity}
    elif tx_type is T.OUTBOUND:
        if tx_status is S.SHIPPED:
            return {ON_HAND: -quantity}
        if tx_status is S.PENDING:
            return {SCHEDULED_OUTBOUND: quantity}
    elif tx_type is T.ADJUSTMENT:
        decrease = adjustment_direction == inv_models.AdjustmentDirection.DECREASE.value
        if tx_status is S.COMPLETED:
            return {ON_HAND: -quantity if decrease else quantity}
        if tx_status is S.PENDING:
            return {SCHEDULED_OUTBOUND if decrease else INBOUND: quantity}
    return {}


class _Tally:
    """품목/창고 하나의 누적 버킷"""

    def __init__(self) -> None:
        self.buckets = {name: BucketQuantities() for name in BUCKETS}

    def apply(self, movement: Movement) -> None:
        sub_field = SUB_STATUS_FIELDS.get(movement.inventory_status)
        effect = movement_effect(
            movement.transaction_type, movement.status, movement.adjustment_direction, movement.quantity
        )
        for name, delta in effect.items():
            bucket = self.buckets[name]
            bucket.total += delta
            if sub_field:
                setattr(bucket, sub_field, getattr(bucket, sub_field) + delta)

    def to_row(self, item_name: str, warehouse: str, as_of: date) -> InventorySnapshotRow:
        on_hand, inbound, outbound = (self.buckets[name] for name in BUCKETS)
        future = BucketQuantities(
            **{
                field: getattr(on_hand, field) + getattr(inbound, field) - getattr(outbound, field)
                for field in ("total", "stock", "consignment", "hold")
            }
        )
        return InventorySnapshotRow(
            item_name=item_name,
            warehouse=warehouse,
            as_of=as_of,
            on_hand=on_hand.model_copy(),
            inbound=inbound.model_copy(),
            scheduled_outbound=outbound.model_copy(),
            future_inventory=future,
        )


def build_snapshot_rows(movements: Iterable[Movement]) -> List[InventorySnapshotRow]:
    """
    이동을 일자 순으로 누적하여 (품목, 창고, 일자)마다 그 시점까지의 누적 행을 만듭니다.
    입력 순서와 무관하게 같은 결과를 내도록 먼저 정렬합니다.
    """
    ordered = sorted(movements, key=lambda m: (m.warehouse, m.item_name, m.transaction_date))
    grouped: "OrderedDict[Tuple[str, str, date], List[Movement]]" = OrderedDict()
    for movement in ordered:
        grouped.setdefault((movement.warehouse, movement.item_name, movement.transaction_date), []).append(movement)

    tallies: Dict[Tuple[str, str], _Tally] = {}
    rows = []
    for (warehouse, item_name, as_of), group in grouped.items():
        tally = tallies.setdefault((warehouse, item_name), _Tally())
        for movement in group:
            tally.apply(movement)
        rows.append(tally.to_row(item_name, warehouse, as_of))
    return rows


def latest_per_item(
    rows: Iterable[InventorySnapshotRow], cutoff: Optional[date] = None
) -> List[InventorySnapshotRow]:
    """
    (품목, 창고)마다 기준일 이하에서 가장 최근 행 하나만 남깁니다.
    이전 행은 가려질 뿐 더해지지 않습니다. 결과는 품목명, 창고 순으로 정렬됩니다.
    """
    latest: Dict[Tuple[str, str], InventorySnapshotRow] = {}
    for row in rows:
        if cutoff is not None and row.as_of > cutoff:
            continue
        key = (row.item_name, row.warehouse)
        current = latest.get(key)
        if current is None or row.as_of > current.as_of:
            latest[key] = row
    return [latest[key] for key in sorted(latest)]


async def fetch_movements(
    db: AsyncSession,
    *,
    warehouse: Optional[str] = None,
    cutoff: Optional[date] = None,
    item_name: Optional[str] = None,
) -> List[Movement]:
    H, D = inv_models.TransactionHeader, inv_models.TransactionDetail
    group_columns = (
        H.warehouse,
        D.item_name,
        H.transaction_date,
        H.transaction_type,
        D.status,
        D.adjustment_direction,
        D.inventory_status,
    )
    query = (
        select(*group_columns, func.sum(D.quantity))
        .select_from(D)
        .join(H, D.transaction_id == H.transaction_id)
        .group_by(*group_columns)
    )
    if warehouse is not None:
        query = query.where(H.warehouse == warehouse)
    if cutoff is not None:
        query = query.where(H.transaction_date <= cutoff)
    if item_name is not None:
        query = query.where(D.item_name == item_name)

    with store_errors(idempotent=True):
        result = await db.execute(query)
    movements = []
    for *keys, quantity in result.all():
        movements.append(Movement(*keys, int(quantity or 0)))
    return movements


async def get_snapshot(
    db: AsyncSession,
    *,
    warehouse: str,
    cutoff: date,
    active_only: bool = False,
) -> List[InventorySnapshotRow]:
    """창고의 기준일 시점 재고 스냅샷. 같은 원장이면 항상 같은 결과를 돌려줍니다."""
    movements = await fetch_movements(db, warehouse=warehouse, cutoff=cutoff)
    rows = latest_per_item(build_snapshot_rows(movements), cutoff)
    if active_only:
        rows = [row for row in rows if row.is_active]
    logger.debug("Snapshot %s as of %s: %d movement group(s), %d row(s)", warehouse, cutoff, len(movements), len(rows))
    return rows


async def get_inventory_summary(
    db: AsyncSession,
    *,
    warehouse: Optional[str] = None,
    item_name: Optional[str] = None,
    negative: bool = False,
) -> List[InventorySnapshotRow]:
    """기준일 없이 원장 전체를 누적한 품목/창고별 요약"""
    movements = await fetch_movements(db, warehouse=warehouse, item_name=item_name)
    rows = latest_per_item(build_snapshot_rows(movements))
    if negative:
        rows = [row for row in rows if row.on_hand.total < 0]
    return rows
