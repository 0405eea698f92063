# app/domains/inv/counts.py

"""
재고 실사(physical count) 워크플로우 모듈입니다.

1. initial_count_sheet: 기준일 스냅샷의 활성 품목으로 실사표(수량 0)를 만듭니다.
2. compute_variances: 실사 수량 - 계산 현재고 = 차이
3. generate_adjustment: 0 이 아닌 차이로 조정(Adjustment) 거래 하나를 생성합니다.
   라인은 종결 상태(Completed)로 바로 기록되므로 상태 정책 검증을 거치지 않습니다.
"""

import logging
import time
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.exceptions import ValidationError
from app.domains.inv import crud as inv_crud
from app.domains.inv import models as inv_models
from app.domains.inv.schemas import CountRecord, InventorySnapshotRow, Variance

logger = logging.getLogger(__name__)

COUNT_REFERENCE_PREFIX = "ADJ-COUNT-"


def initial_count_sheet(snapshot_rows: Iterable[InventorySnapshotRow]) -> List[CountRecord]:
    return [CountRecord(item_name=row.item_name, quantity=0) for row in snapshot_rows if row.is_active]


def compute_variances(
    count_records: Iterable[CountRecord],
    snapshot_rows: Iterable[InventorySnapshotRow],
) -> List[Variance]:
    """
    스냅샷에 없는 품목의 계산 현재고는 0 으로 봅니다.
    같은 품목의 실사 기록이 여러 건이면 수량을 합산해 품목당 차이 하나만 만듭니다.
    """
    calculated: Dict[str, int] = {}
    for row in snapshot_rows:
        calculated[row.item_name] = calculated.get(row.item_name, 0) + row.on_hand.total

    physical: Dict[str, int] = {}
    for record in count_records:
        physical[record.item_name] = physical.get(record.item_name, 0) + record.quantity

    variances = []
    for item_name, physical_count in physical.items():
        calculated_count = calculated.get(item_name, 0)
        variances.append(
            Variance(
                item_name=item_name,
                physical_count=physical_count,
                calculated_count=calculated_count,
                variance=physical_count - calculated_count,
            )
        )
    return variances


def adjustment_comment(variance: int) -> Optional[str]:
    if variance > 0:
        return inv_models.COUNT_OVERAGE
    if variance < 0:
        return inv_models.COUNT_SHORTAGE
    return None


def count_reference_number(epoch_ms: int) -> str:
    return f"{COUNT_REFERENCE_PREFIX}{epoch_ms}"


def build_adjustment_details(variances: Iterable[Variance]) -> List[inv_models.TransactionDetail]:
    """0 이 아닌 차이마다 조정 라인을 만듭니다 (수량은 절대값, 방향은 부호)."""
    details = []
    for variance in variances:
        if variance.variance == 0:
            continue
        direction = (
            inv_models.AdjustmentDirection.INCREASE
            if variance.variance > 0
            else inv_models.AdjustmentDirection.DECREASE
        )
        details.append(
            inv_models.TransactionDetail(
                item_name=variance.item_name,
                quantity=abs(variance.variance),
                inventory_status=inv_models.InventoryStatus.STOCK.value,
                status=inv_models.TransactionStatus.COMPLETED.value,
                adjustment_direction=direction.value,
                comments=adjustment_comment(variance.variance),
            )
        )
    return details


async def generate_adjustment(
    db: AsyncSession,
    *,
    warehouse: str,
    count_date: date,
    variances: List[Variance],
) -> inv_models.TransactionHeader:
    """
    실사 차이를 조정 거래 하나(헤더 + 라인)로 한 번에 커밋합니다.
    0 이 아닌 차이가 없거나 같은 품목이 두 번 나오면 아무것도 쓰지 않고 ValidationError 를 발생시킵니다.
    참조번호는 ADJ-COUNT-<epoch ms> 이며, 충돌하면 1ms 씩 올려 다시 시도합니다.
    """
    if not any(v.variance for v in variances):
        raise ValidationError("No variances to adjust.", field="variances")
    seen = set()
    for v in variances:
        if v.item_name in seen:
            raise ValidationError("Each item may appear only once.", field="variances", value=v.item_name)
        seen.add(v.item_name)

    started_ms = int(time.time() * 1000)

    async def work(attempt: int) -> inv_models.TransactionHeader:
        # 롤백되면 이전 시도의 객체는 세션에서 빠지므로 매번 새로 만듭니다.
        header = inv_models.TransactionHeader(
            transaction_type=inv_models.TransactionType.ADJUSTMENT.value,
            transaction_date=count_date,
            warehouse=warehouse,
            reference_type=inv_models.INVENTORY_COUNT,
            reference_number=count_reference_number(started_ms + attempt - 1),
            comments=f"Inventory count adjustment for {warehouse} as of {count_date.isoformat()}",
        )
        details = build_adjustment_details(variances)
        return await inv_crud.transaction_header.insert_header_with_details(db, header, details)

    header = await inv_crud.transaction_header.run_unit_of_work(db, work, prefix=COUNT_REFERENCE_PREFIX)
    logger.info(
        "Count adjustment %s for %s as of %s",
        header.reference_number, warehouse, count_date.isoformat(),
    )
    return await inv_crud.transaction_header.get_with_details(db, header.transaction_id)
