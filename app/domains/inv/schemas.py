# app/domains/inv/schemas.py

"""
'inv' 도메인 (재고 거래 원장)의 Pydantic 스키마를 정의하는 모듈입니다.

- 거래 생성/수정 요청 스키마와 응답 스키마
- 재고 스냅샷 행 (원장에서 파생되며 저장되지 않음)
- 실사(CountRecord) 및 차이(Variance) 스키마
- 보고서 응답 스키마
"""

import uuid
from typing import Optional, List
from datetime import datetime, date
from pydantic import BaseModel, ConfigDict, Field

from app.domains.inv.models import (
    AdjustmentDirection,
    InventoryStatus,
    TransactionStatus,
    TransactionType,
)


# =============================================================================
# 1. 거래 생성 스키마
# =============================================================================
class TransactionItemCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=100, description="품목명")
    quantity: int = Field(..., ge=0, description="수량 (크기만, 방향은 거래 유형이 결정)")
    lot_number: Optional[str] = Field(None, max_length=100, description="로트 번호")
    comments: Optional[str] = Field(None, description="라인 비고")
    adjustment_direction: AdjustmentDirection = Field(
        AdjustmentDirection.INCREASE, description="조정 거래에서만 사용하는 증감 방향"
    )


class TransferInfo(BaseModel):
    """참조 유형이 'Transfer Order' 일 때 도착 창고에 생성할 입고 미러 정보"""
    to_warehouse: str = Field(..., min_length=1, max_length=100, description="도착 창고")
    transfer_date: Optional[date] = Field(None, description="입고 예정일 (미지정 시 출고일 + 영업일 기준)")
    to_inventory_status: Optional[InventoryStatus] = Field(None, description="입고 시 재고 구분 (미지정 시 출고와 동일)")


class TransactionCreate(BaseModel):
    transaction_type: TransactionType = Field(..., description="Inbound, Outbound, Adjustment")
    transaction_date: date = Field(..., description="거래일")
    warehouse: str = Field(..., min_length=1, max_length=100, description="창고")
    reference_type: str = Field(..., max_length=100, description="참조 유형 (예: 'Transfer Order')")
    items: List[TransactionItemCreate] = Field(default_factory=list, description="상세 라인 목록")
    status: TransactionStatus = Field(TransactionStatus.PENDING, description="모든 라인에 적용할 상태")
    inventory_status: InventoryStatus = Field(InventoryStatus.STOCK, description="모든 라인에 적용할 재고 구분")
    shipment_carrier: Optional[str] = Field(None, max_length=100)
    shipping_document: Optional[str] = Field(None, max_length=100)
    customer_po: Optional[str] = Field(None, max_length=100)
    customer_name: Optional[str] = Field(None, max_length=200)
    comments: Optional[str] = None
    related_transaction_id: Optional[uuid.UUID] = None
    transfer: Optional[TransferInfo] = None


# =============================================================================
# 2. 거래 수정 스키마
# =============================================================================
class TransactionHeaderUpdate(BaseModel):
    """
    헤더에서 수정 가능한 필드만 허용합니다.
    거래 유형과 참조번호는 생성 후 변경할 수 없습니다.
    """
    model_config = ConfigDict(extra="forbid")

    transaction_date: Optional[date] = None
    warehouse: Optional[str] = Field(None, min_length=1, max_length=100)
    shipment_carrier: Optional[str] = Field(None, max_length=100)
    shipping_document: Optional[str] = Field(None, max_length=100)
    customer_po: Optional[str] = Field(None, max_length=100)
    customer_name: Optional[str] = Field(None, max_length=200)
    comments: Optional[str] = None


class TransactionDetailUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    item_name: Optional[str] = Field(None, min_length=1, max_length=100)
    quantity: Optional[int] = Field(None, ge=0)
    inventory_status: Optional[InventoryStatus] = None
    status: Optional[TransactionStatus] = None
    adjustment_direction: Optional[AdjustmentDirection] = None
    lot_number: Optional[str] = Field(None, max_length=100)
    comments: Optional[str] = None


# =============================================================================
# 3. 거래 응답 스키마
# =============================================================================
class TransactionDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    detail_id: uuid.UUID
    transaction_id: uuid.UUID
    item_name: str
    quantity: int
    inventory_status: str
    status: str
    adjustment_direction: str
    lot_number: Optional[str] = None
    comments: Optional[str] = None


class TransactionHeaderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: uuid.UUID
    transaction_type: str
    transaction_date: date
    warehouse: str
    reference_type: str
    reference_number: str
    shipment_carrier: Optional[str] = None
    shipping_document: Optional[str] = None
    customer_po: Optional[str] = None
    customer_name: Optional[str] = None
    comments: Optional[str] = None
    related_transaction_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    details: List[TransactionDetailResponse] = []


class TransactionCreateResponse(TransactionHeaderResponse):
    mirror_transaction_id: Optional[uuid.UUID] = Field(None, description="이동 입고 미러 거래 ID")
    mirror_reference_number: Optional[str] = None


class AdvanceResult(BaseModel):
    transaction_id: uuid.UUID
    reference_number: str
    next_status: TransactionStatus
    updated_count: int = Field(..., description="Pending 에서 다음 상태로 바뀐 라인 수 (0 이어도 성공)")


class DetailDeleteResult(BaseModel):
    detail_id: uuid.UUID
    transaction_id: uuid.UUID
    header_deleted: bool = Field(..., description="마지막 라인이어서 헤더까지 삭제되었는지 여부")


# =============================================================================
# 4. 재고 스냅샷 (원장에서 파생, 저장하지 않음)
# =============================================================================
class BucketQuantities(BaseModel):
    total: int = 0
    stock: int = 0
    consignment: int = 0
    hold: int = 0


class InventorySnapshotRow(BaseModel):
    item_name: str
    warehouse: str
    as_of: date = Field(..., description="이 행에 반영된 마지막 원장 이동 일자")
    on_hand: BucketQuantities = Field(default_factory=BucketQuantities)
    inbound: BucketQuantities = Field(default_factory=BucketQuantities)
    scheduled_outbound: BucketQuantities = Field(default_factory=BucketQuantities)
    future_inventory: BucketQuantities = Field(default_factory=BucketQuantities)

    @property
    def is_active(self) -> bool:
        """현재고/입고예정/출고예정 중 하나라도 0 이 아니면 활성 행입니다."""
        return bool(self.on_hand.total or self.inbound.total or self.scheduled_outbound.total)


# =============================================================================
# 5. 실사 (Count) 및 차이 (Variance)
# =============================================================================
class CountRecord(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=0, description="실사 수량")
    notes: Optional[str] = None


class Variance(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=100)
    physical_count: int = 0
    calculated_count: int = 0
    variance: int = Field(..., description="실사 수량 - 계산 현재고")


class CountSheetRequest(BaseModel):
    warehouse: str = Field(..., min_length=1)
    count_date: date


class CountSheetResponse(CountSheetRequest):
    counts: List[CountRecord]
    snapshot: List[InventorySnapshotRow]


class VarianceRequest(CountSheetRequest):
    counts: List[CountRecord] = Field(..., min_length=1)


class VarianceResponse(CountSheetRequest):
    variances: List[Variance]
    pending_transactions: List[TransactionHeaderResponse] = Field(
        default_factory=list, description="차이를 설명할 수 있는 미완료(Pending) 거래"
    )


class AdjustmentRequest(CountSheetRequest):
    variances: List[Variance]


class AdjustmentResponse(BaseModel):
    transaction_id: uuid.UUID
    reference_number: str
    line_count: int


# =============================================================================
# 6. 보고서
# =============================================================================
class ItemReport(BaseModel):
    item_name: str
    total_on_hand: BucketQuantities
    by_warehouse: List[InventorySnapshotRow]
    transactions: List[TransactionHeaderResponse]
    transaction_count: int


class WarehouseReport(BaseModel):
    warehouse: str
    items: List[InventorySnapshotRow]


class NegativeInventoryItem(BaseModel):
    item_name: str
    warehouse: str
    on_hand_total: int


class NegativeInventoryReport(BaseModel):
    negative_items: List[NegativeInventoryItem]
