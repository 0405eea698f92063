# app/domains/inv/routers.py

"""
'inv' 도메인 (재고 거래 원장)의 API 엔드포인트를 정의하는 모듈입니다.

- 거래 생성/조회/수정/삭제 및 다음 단계 진행
- 재고 스냅샷 조회
- 재고 실사 (실사표, 차이 계산, 조정 거래 생성)
- 요약 보고서

쓰기 작업은 재고 원장 쓰기 권한(deps.get_inventory_writer)이 필요합니다.
오류는 app.core.exceptions 의 처리기가 JSON 응답으로 변환합니다.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core import dependencies as deps
from app.domains.inv import counts as inv_counts
from app.domains.inv import crud as inv_crud
from app.domains.inv import models as inv_models
from app.domains.inv import reports as inv_reports
from app.domains.inv import schemas as inv_schemas
from app.domains.inv import snapshot as inv_snapshot
from app.domains.usr.models import User as UsrUser

router = APIRouter(
    tags=["Inventory Ledger (재고 원장)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. 거래 (transaction_header / transaction_detail) 엔드포인트
# =============================================================================
@router.post(
    "/transactions",
    response_model=inv_schemas.TransactionCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_transaction(
    transaction_in: inv_schemas.TransactionCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_inventory_writer),
):
    """
    새 거래를 생성합니다.
    참조 유형이 'Transfer Order' 이고 transfer.to_warehouse 가 있으면 도착 창고의 입고 미러도 생성됩니다.
    """
    header = await inv_crud.transaction_header.create_transaction(db, obj_in=transaction_in)
    response = inv_schemas.TransactionCreateResponse.model_validate(header)
    if header.reference_type == inv_models.TRANSFER_ORDER:
        mirror = await inv_crud.transaction_header.get_mirror(db, header.transaction_id)
        if mirror is not None:
            response.mirror_transaction_id = mirror.transaction_id
            response.mirror_reference_number = mirror.reference_number
    return response


@router.get("/transactions", response_model=List[inv_schemas.TransactionHeaderResponse])
async def read_transactions(
    warehouse: Optional[str] = None,
    transaction_type: Optional[inv_models.TransactionType] = None,
    reference_type: Optional[str] = None,
    item_name: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """거래 목록을 조회합니다 (거래일 내림차순)."""
    return await inv_crud.transaction_header.get_multi_with_details(
        db,
        warehouse=warehouse,
        transaction_type=transaction_type,
        reference_type=reference_type,
        item_name=item_name,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )


@router.get("/transactions/{transaction_id}", response_model=inv_schemas.TransactionHeaderResponse)
async def read_transaction(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await inv_crud.transaction_header.get_or_404(db, transaction_id)


@router.put("/transactions/{transaction_id}", response_model=inv_schemas.TransactionHeaderResponse)
async def update_transaction(
    transaction_id: uuid.UUID,
    header_in: inv_schemas.TransactionHeaderUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_inventory_writer),
):
    """헤더의 수정 가능한 필드만 변경합니다. 거래 유형과 참조번호는 변경할 수 없습니다."""
    return await inv_crud.transaction_header.update_transaction_header(
        db, transaction_id=transaction_id, obj_in=header_in
    )


@router.delete("/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_inventory_writer),
):
    """거래와 모든 상세 라인을 삭제합니다."""
    await inv_crud.transaction_header.delete_transaction(db, transaction_id=transaction_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/transactions/{transaction_id}/details/{detail_id}",
    response_model=inv_schemas.TransactionDetailResponse,
)
async def update_transaction_detail(
    transaction_id: uuid.UUID,
    detail_id: uuid.UUID,
    detail_in: inv_schemas.TransactionDetailUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_inventory_writer),
):
    """상세 라인을 수정합니다. 상태는 헤더의 거래 유형 기준으로 다시 검증됩니다."""
    return await inv_crud.transaction_detail.update_transaction_detail(
        db, transaction_id=transaction_id, detail_id=detail_id, obj_in=detail_in
    )


@router.delete(
    "/transactions/{transaction_id}/details/{detail_id}",
    response_model=inv_schemas.DetailDeleteResult,
)
async def delete_transaction_detail(
    transaction_id: uuid.UUID,
    detail_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_inventory_writer),
):
    """상세 라인을 삭제합니다. 마지막 라인이면 헤더도 삭제됩니다."""
    header_deleted = await inv_crud.transaction_detail.delete_transaction_detail(
        db, transaction_id=transaction_id, detail_id=detail_id
    )
    return inv_schemas.DetailDeleteResult(
        detail_id=detail_id, transaction_id=transaction_id, header_deleted=header_deleted
    )


@router.post("/transactions/{transaction_id}/advance", response_model=inv_schemas.AdvanceResult)
async def advance_transaction(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_inventory_writer),
):
    """Pending 라인을 거래 유형의 다음 상태(Received/Shipped/Completed)로 진행합니다."""
    return await inv_crud.transaction_header.advance_transaction(db, transaction_id=transaction_id)


# =============================================================================
# 2. 재고 스냅샷 엔드포인트
# =============================================================================
@router.get("/snapshots", response_model=List[inv_schemas.InventorySnapshotRow])
async def read_snapshot(
    warehouse: str,
    cutoff_date: date,
    active_only: bool = False,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """창고의 기준일 시점 재고 (현재고/입고예정/출고예정/미래재고)"""
    return await inv_snapshot.get_snapshot(db, warehouse=warehouse, cutoff=cutoff_date, active_only=active_only)


# =============================================================================
# 3. 재고 실사 엔드포인트
# =============================================================================
@router.post("/counts/sheet", response_model=inv_schemas.CountSheetResponse)
async def create_count_sheet(
    request: inv_schemas.CountSheetRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """기준일 활성 품목으로 실사표(수량 0)를 만듭니다."""
    rows = await inv_snapshot.get_snapshot(db, warehouse=request.warehouse, cutoff=request.count_date)
    return inv_schemas.CountSheetResponse(
        warehouse=request.warehouse,
        count_date=request.count_date,
        counts=inv_counts.initial_count_sheet(rows),
        snapshot=[row for row in rows if row.is_active],
    )


@router.post("/counts/variances", response_model=inv_schemas.VarianceResponse)
async def calculate_variances(
    request: inv_schemas.VarianceRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """실사 수량과 계산 현재고의 차이, 그리고 차이를 설명할 수 있는 미완료 거래를 반환합니다."""
    rows = await inv_snapshot.get_snapshot(db, warehouse=request.warehouse, cutoff=request.count_date)
    pending = await inv_crud.transaction_header.get_pending_transactions(
        db, warehouse=request.warehouse, cutoff=request.count_date
    )
    return inv_schemas.VarianceResponse(
        warehouse=request.warehouse,
        count_date=request.count_date,
        variances=inv_counts.compute_variances(request.counts, rows),
        pending_transactions=[inv_schemas.TransactionHeaderResponse.model_validate(h) for h in pending],
    )


@router.post(
    "/counts/adjustments",
    response_model=inv_schemas.AdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_count_adjustment(
    request: inv_schemas.AdjustmentRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_inventory_writer),
):
    """0 이 아닌 차이로 조정 거래를 생성합니다."""
    header = await inv_counts.generate_adjustment(
        db, warehouse=request.warehouse, count_date=request.count_date, variances=request.variances
    )
    return inv_schemas.AdjustmentResponse(
        transaction_id=header.transaction_id,
        reference_number=header.reference_number,
        line_count=len(header.details),
    )


# =============================================================================
# 4. 보고서 엔드포인트
# =============================================================================
@router.get("/reports/items/{item_name}", response_model=inv_schemas.ItemReport)
async def read_item_report(
    item_name: str,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await inv_reports.item_report(db, item_name=item_name)


@router.get("/reports/warehouses/{warehouse}", response_model=inv_schemas.WarehouseReport)
async def read_warehouse_report(
    warehouse: str,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await inv_reports.warehouse_report(db, warehouse=warehouse)


@router.get("/reports/negative-inventory", response_model=inv_schemas.NegativeInventoryReport)
async def read_negative_inventory_report(
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await inv_reports.negative_inventory_report(db)
