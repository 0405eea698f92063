# tests/domains/test_inv_counts_n.py

"""
재고 실사(app.domains.inv.counts): 차이 계산과 조정 거래 생성에 대한 테스트 모듈입니다.
"""

from datetime import date

import pytest
from httpx import AsyncClient
from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.exceptions import ValidationError
from app.domains.inv import counts as inv_counts
from app.domains.inv import crud as inv_crud
from app.domains.inv import models as inv_models
from app.domains.inv import schemas as inv_schemas

API = "/api/v1/inv"
COUNT_DATE = date(2024, 3, 31)


def snapshot_row(item_name: str, on_hand: int) -> inv_schemas.InventorySnapshotRow:
    return inv_schemas.InventorySnapshotRow(
        item_name=item_name,
        warehouse="W1",
        as_of=COUNT_DATE,
        on_hand=inv_schemas.BucketQuantities(total=on_hand, stock=on_hand),
        inbound=inv_schemas.BucketQuantities(),
        scheduled_outbound=inv_schemas.BucketQuantities(),
        future_inventory=inv_schemas.BucketQuantities(total=on_hand, stock=on_hand),
    )


async def receive(db: AsyncSession, items, *, status: str = "Received", day: date = date(2024, 3, 1)):
    return await inv_crud.transaction_header.create_transaction(
        db,
        obj_in=inv_schemas.TransactionCreate(
            transaction_type="Inbound",
            transaction_date=day,
            warehouse="W1",
            reference_type="Purchase Order",
            status=status,
            items=[{"item_name": name, "quantity": qty} for name, qty in items],
        ),
    )


async def count_adjustments(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(inv_models.TransactionHeader).where(
            inv_models.TransactionHeader.reference_type == inv_models.INVENTORY_COUNT
        )
    )
    return result.scalar_one()


# =============================================================================
# 1. 차이 계산
# =============================================================================
def test_compute_variances_shortage_overage_and_unknown_item():
    records = [
        inv_schemas.CountRecord(item_name="A", quantity=95),
        inv_schemas.CountRecord(item_name="B", quantity=50),
        inv_schemas.CountRecord(item_name="NEW", quantity=4),
    ]
    rows = [snapshot_row("A", 100), snapshot_row("B", 50)]

    variances = {v.item_name: v for v in inv_counts.compute_variances(records, rows)}

    assert variances["A"].variance == -5
    assert (variances["A"].physical_count, variances["A"].calculated_count) == (95, 100)
    assert variances["B"].variance == 0
    # 스냅샷에 없는 품목은 계산 현재고 0
    assert (variances["NEW"].calculated_count, variances["NEW"].variance) == (0, 4)


def test_compute_variances_merges_repeated_item_counts():
    # 같은 품목을 두 위치에서 세어 두 건으로 기록한 경우
    records = [
        inv_schemas.CountRecord(item_name="A", quantity=60),
        inv_schemas.CountRecord(item_name="B", quantity=1),
        inv_schemas.CountRecord(item_name="A", quantity=35),
    ]

    variances = inv_counts.compute_variances(records, [snapshot_row("A", 100)])

    assert [(v.item_name, v.physical_count, v.calculated_count, v.variance) for v in variances] == [
        ("A", 95, 100, -5),
        ("B", 1, 0, 1),
    ]
    details = inv_counts.build_adjustment_details(variances)
    assert [(d.item_name, d.quantity, d.adjustment_direction) for d in details] == [
        ("A", 5, "Decrease"),
        ("B", 1, "Increase"),
    ]


def test_initial_count_sheet_lists_active_items_with_zero():
    rows = [snapshot_row("A", 3), snapshot_row("EMPTY", 0)]
    sheet = inv_counts.initial_count_sheet(rows)
    assert [(r.item_name, r.quantity) for r in sheet] == [("A", 0)]


def test_build_adjustment_details_skips_zero_variances():
    variances = [
        inv_schemas.Variance(item_name="A", variance=-5),
        inv_schemas.Variance(item_name="B", variance=0),
        inv_schemas.Variance(item_name="C", variance=3),
    ]

    details = inv_counts.build_adjustment_details(variances)

    assert [(d.item_name, d.quantity, d.adjustment_direction, d.comments) for d in details] == [
        ("A", 5, "Decrease", inv_models.COUNT_SHORTAGE),
        ("C", 3, "Increase", inv_models.COUNT_OVERAGE),
    ]
    assert all(d.status == "Completed" and d.inventory_status == "Stock" for d in details)


def test_count_reference_number_format():
    assert inv_counts.count_reference_number(1711843200000) == "ADJ-COUNT-1711843200000"
    assert inv_counts.adjustment_comment(0) is None


# =============================================================================
# 2. 조정 거래 생성
# =============================================================================
@pytest.mark.asyncio
async def test_generate_adjustment_writes_one_transaction(db_session: AsyncSession):
    variances = [
        inv_schemas.Variance(item_name="A", physical_count=95, calculated_count=100, variance=-5),
        inv_schemas.Variance(item_name="B", physical_count=50, calculated_count=50, variance=0),
        inv_schemas.Variance(item_name="C", physical_count=3, calculated_count=0, variance=3),
    ]

    header = await inv_counts.generate_adjustment(
        db_session, warehouse="W1", count_date=COUNT_DATE, variances=variances
    )

    assert header.transaction_type == "Adjustment"
    assert header.reference_type == inv_models.INVENTORY_COUNT
    assert header.reference_number.startswith("ADJ-COUNT-")
    assert header.transaction_date == COUNT_DATE
    assert header.comments == "Inventory count adjustment for W1 as of 2024-03-31"
    assert sorted((d.item_name, d.quantity, d.adjustment_direction) for d in header.details) == [
        ("A", 5, "Decrease"),
        ("C", 3, "Increase"),
    ]


@pytest.mark.asyncio
async def test_generate_adjustment_reference_numbers_are_unique(db_session: AsyncSession):
    variances = [inv_schemas.Variance(item_name="A", variance=1)]

    first = await inv_counts.generate_adjustment(db_session, warehouse="W1", count_date=COUNT_DATE, variances=variances)
    second = await inv_counts.generate_adjustment(db_session, warehouse="W1", count_date=COUNT_DATE, variances=variances)

    assert first.reference_number != second.reference_number
    assert await count_adjustments(db_session) == 2


@pytest.mark.asyncio
async def test_generate_adjustment_rejects_all_zero(db_session: AsyncSession):
    variances = [inv_schemas.Variance(item_name="A", variance=0)]

    with pytest.raises(ValidationError) as exc_info:
        await inv_counts.generate_adjustment(db_session, warehouse="W1", count_date=COUNT_DATE, variances=variances)

    assert exc_info.value.field == "variances"
    assert await count_adjustments(db_session) == 0


@pytest.mark.asyncio
async def test_generate_adjustment_rejects_repeated_item(db_session: AsyncSession):
    variances = [
        inv_schemas.Variance(item_name="A", variance=-5),
        inv_schemas.Variance(item_name="A", variance=-5),
    ]

    with pytest.raises(ValidationError) as exc_info:
        await inv_counts.generate_adjustment(db_session, warehouse="W1", count_date=COUNT_DATE, variances=variances)

    assert exc_info.value.field == "variances"
    assert exc_info.value.value == "A"
    assert await count_adjustments(db_session) == 0


@pytest.mark.asyncio
async def test_adjustment_does_not_consume_plain_adjustment_sequence(db_session: AsyncSession):
    await inv_counts.generate_adjustment(
        db_session, warehouse="W1", count_date=COUNT_DATE,
        variances=[inv_schemas.Variance(item_name="A", variance=2)],
    )
    assert await inv_crud.transaction_header.next_reference_number(db_session, "Adjustment") == "ADJ-00001"


# =============================================================================
# 3. API
# =============================================================================
@pytest.mark.asyncio
async def test_count_sheet_endpoint(authorized_client: AsyncClient, db_session: AsyncSession):
    await receive(db_session, [("A", 10), ("B", 2)])

    response = await authorized_client.post(
        f"{API}/counts/sheet", json={"warehouse": "W1", "count_date": "2024-03-31"}
    )

    assert response.status_code == 200
    data = response.json()
    assert [c["item_name"] for c in data["counts"]] == ["A", "B"]
    assert all(c["quantity"] == 0 for c in data["counts"])
    assert [row["on_hand"]["total"] for row in data["snapshot"]] == [10, 2]


@pytest.mark.asyncio
async def test_variances_endpoint_lists_pending_transactions(
    authorized_client: AsyncClient, db_session: AsyncSession
):
    await receive(db_session, [("A", 100)])
    pending = await receive(db_session, [("A", 7)], status="Pending", day=date(2024, 3, 20))

    response = await authorized_client.post(
        f"{API}/counts/variances",
        json={
            "warehouse": "W1",
            "count_date": "2024-03-31",
            "counts": [{"item_name": "A", "quantity": 95}, {"item_name": "X", "quantity": 1}],
        },
    )

    assert response.status_code == 200
    data = response.json()
    variances = {v["item_name"]: v for v in data["variances"]}
    assert variances["A"]["variance"] == -5
    assert variances["X"] == {"item_name": "X", "physical_count": 1, "calculated_count": 0, "variance": 1}
    assert [t["transaction_id"] for t in data["pending_transactions"]] == [str(pending.transaction_id)]


@pytest.mark.asyncio
async def test_variances_endpoint_merges_repeated_items(authorized_client: AsyncClient, db_session: AsyncSession):
    await receive(db_session, [("A", 100)])

    response = await authorized_client.post(
        f"{API}/counts/variances",
        json={
            "warehouse": "W1",
            "count_date": "2024-03-31",
            "counts": [{"item_name": "A", "quantity": 40}, {"item_name": "A", "quantity": 60}],
        },
    )

    assert response.status_code == 200
    assert response.json()["variances"] == [
        {"item_name": "A", "physical_count": 100, "calculated_count": 100, "variance": 0}
    ]


@pytest.mark.asyncio
async def test_variances_endpoint_requires_counts(authorized_client: AsyncClient):
    response = await authorized_client.post(
        f"{API}/counts/variances", json={"warehouse": "W1", "count_date": "2024-03-31", "counts": []}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_adjustment_endpoint_settles_on_hand(
    inventory_manager_client: AsyncClient, db_session: AsyncSession
):
    await receive(db_session, [("A", 100)])

    response = await inventory_manager_client.post(
        f"{API}/counts/adjustments",
        json={
            "warehouse": "W1",
            "count_date": "2024-03-31",
            "variances": [
                {"item_name": "A", "physical_count": 95, "calculated_count": 100, "variance": -5},
                {"item_name": "B", "variance": 0},
            ],
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["reference_number"].startswith("ADJ-COUNT-")
    assert data["line_count"] == 1

    snapshot = (
        await inventory_manager_client.get(
            f"{API}/snapshots", params={"warehouse": "W1", "cutoff_date": "2024-03-31"}
        )
    ).json()
    assert snapshot[0]["on_hand"]["total"] == 95


@pytest.mark.asyncio
async def test_adjustment_endpoint_rejects_all_zero(inventory_manager_client: AsyncClient, db_session: AsyncSession):
    response = await inventory_manager_client.post(
        f"{API}/counts/adjustments",
        json={"warehouse": "W1", "count_date": "2024-03-31", "variances": [{"item_name": "A", "variance": 0}]},
    )

    assert response.status_code == 400
    assert response.json()["field"] == "variances"
    assert await count_adjustments(db_session) == 0


@pytest.mark.asyncio
async def test_adjustment_endpoint_forbidden_for_general_user(authorized_client: AsyncClient):
    response = await authorized_client.post(
        f"{API}/counts/adjustments",
        json={"warehouse": "W1", "count_date": "2024-03-31", "variances": [{"item_name": "A", "variance": 1}]},
    )
    assert response.status_code == 403
