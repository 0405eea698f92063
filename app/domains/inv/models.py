# app/domains/inv/models.py

"""
'inv' 도메인 (재고 거래 원장)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

원장은 거래 헤더(transaction_header)와 상세 라인(transaction_detail)으로 구성되며,
모든 재고 계산(현재고/입고예정/출고예정/미래재고)의 유일한 원천입니다.
수량은 항상 크기(magnitude)로 저장되고, 방향은 헤더 유형이 결정합니다.
조정(Adjustment) 라인만 adjustment_direction 으로 증감 방향을 가집니다.
"""

import uuid
from enum import Enum
from typing import Optional, List
from datetime import datetime, date, UTC
from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy import ForeignKey, Index, Uuid
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP, DATE


# =============================================================================
# 0. 거래 유형 / 상태 / 재고 구분 Enum
# =============================================================================
class TransactionType(str, Enum):
    INBOUND = "Inbound"
    OUTBOUND = "Outbound"
    ADJUSTMENT = "Adjustment"


class TransactionStatus(str, Enum):
    PENDING = "Pending"
    SHIPPED = "Shipped"
    RECEIVED = "Received"
    COMPLETED = "Completed"


class InventoryStatus(str, Enum):
    """재고 구분 (sub-status)"""
    STOCK = "Stock"
    CONSIGNMENT = "Consignment"
    HOLD = "Hold"


class AdjustmentDirection(str, Enum):
    INCREASE = "Increase"
    DECREASE = "Decrease"


# 참조 유형(reference_type) 중 특별한 처리가 필요한 값
TRANSFER_ORDER = "Transfer Order"
INVENTORY_COUNT = "Inventory Count"

# 실사 조정 라인 비고
COUNT_OVERAGE = "Count overage"
COUNT_SHORTAGE = "Count shortage"


# =============================================================================
# 1. transaction_header 테이블 모델
# =============================================================================
class TransactionHeaderBase(SQLModel):
    transaction_type: str = Field(max_length=20, description="Inbound, Outbound, Adjustment")
    transaction_date: date = Field(sa_column=Column(DATE, nullable=False))
    warehouse: str = Field(max_length=100)
    reference_type: str = Field(max_length=100, description="예: 'Transfer Order', 'Purchase Order', 'Inventory Count'")
    reference_number: str = Field(
        max_length=50,
        sa_column_kwargs={"unique": True},
        description="유형 접두사 + 순번 (IB-00001, OB-00001, ADJ-00001, ADJ-COUNT-<ms>)"
    )
    shipment_carrier: Optional[str] = Field(default=None, max_length=100)
    shipping_document: Optional[str] = Field(default=None, max_length=100)
    customer_po: Optional[str] = Field(default=None, max_length=100)
    customer_name: Optional[str] = Field(default=None, max_length=200)
    comments: Optional[str] = Field(default=None)
    # 이동(Transfer)의 출고/입고 양쪽을 연결하는 자기 참조 키
    related_transaction_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(
            Uuid,
            ForeignKey("transaction_header.transaction_id", ondelete="SET NULL"),
            nullable=True,
        )
    )


class TransactionHeader(TransactionHeaderBase, table=True):
    __tablename__ = "transaction_header"
    __table_args__ = (
        # 스냅샷 집계는 항상 창고 + 기준일로 범위를 좁힙니다.
        Index("ix_transaction_header_warehouse_date", "warehouse", "transaction_date"),
    )

    transaction_id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()),
        description="레코드 마지막 업데이트 일시"
    )

    details: List["TransactionDetail"] = Relationship(
        back_populates="header",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "TransactionDetail.created_at",
        }
    )


# =============================================================================
# 2. transaction_detail 테이블 모델
# =============================================================================
class TransactionDetailBase(SQLModel):
    transaction_id: uuid.UUID = Field(
        sa_column=Column(
            Uuid,
            ForeignKey("transaction_header.transaction_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    item_name: str = Field(max_length=100, index=True)
    quantity: int = Field(default=0, ge=0, description="항상 크기(양수)로 저장, 방향은 헤더 유형이 결정")
    inventory_status: str = Field(default=InventoryStatus.STOCK.value, max_length=20)
    status: str = Field(default=TransactionStatus.PENDING.value, max_length=20)
    adjustment_direction: str = Field(
        default=AdjustmentDirection.INCREASE.value,
        max_length=10,
        description="조정(Adjustment) 라인의 증감 방향"
    )
    lot_number: Optional[str] = Field(default=None, max_length=100)
    comments: Optional[str] = Field(default=None)


class TransactionDetail(TransactionDetailBase, table=True):
    __tablename__ = "transaction_detail"

    detail_id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()),
        description="레코드 마지막 업데이트 일시"
    )

    header: "TransactionHeader" = Relationship(back_populates="details")
