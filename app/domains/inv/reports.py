# app/domains/inv/reports.py

"""
재고 요약 보고서(품목별, 창고별, 음수 재고)를 만드는 읽기 전용 모듈입니다.
표시 형식은 다루지 않고 데이터만 반환합니다.
"""

from sqlmodel.ext.asyncio.session import AsyncSession

from app.domains.inv import crud as inv_crud
from app.domains.inv import schemas as inv_schemas
from app.domains.inv.snapshot import get_inventory_summary

RECENT_TRANSACTION_LIMIT = 50


async def item_report(db: AsyncSession, *, item_name: str) -> inv_schemas.ItemReport:
    rows = await get_inventory_summary(db, item_name=item_name)
    total = inv_schemas.BucketQuantities()
    for row in rows:
        total.total += row.on_hand.total
        total.stock += row.on_hand.stock
        total.consignment += row.on_hand.consignment
        total.hold += row.on_hand.hold

    transactions = await inv_crud.transaction_header.get_multi_with_details(
        db, item_name=item_name, limit=RECENT_TRANSACTION_LIMIT
    )
    return inv_schemas.ItemReport(
        item_name=item_name,
        total_on_hand=total,
        by_warehouse=rows,
        transactions=[inv_schemas.TransactionHeaderResponse.model_validate(t) for t in transactions],
        transaction_count=len(transactions),
    )


async def warehouse_report(db: AsyncSession, *, warehouse: str) -> inv_schemas.WarehouseReport:
    rows = await get_inventory_summary(db, warehouse=warehouse)
    return inv_schemas.WarehouseReport(warehouse=warehouse, items=[row for row in rows if row.is_active])


async def negative_inventory_report(db: AsyncSession) -> inv_schemas.NegativeInventoryReport:
    rows = await get_inventory_summary(db, negative=True)
    return inv_schemas.NegativeInventoryReport(
        negative_items=[
            inv_schemas.NegativeInventoryItem(
                item_name=row.item_name, warehouse=row.warehouse, on_hand_total=row.on_hand.total
            )
            for row in rows
        ]
    )
