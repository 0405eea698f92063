# app/domains/inv/crud.py

"""
'inv' 도메인의 CRUD(Create, Read, Update, Delete) 작업을 위한 함수들을 정의하는 모듈입니다.
SQLModel과 SQLAlchemy를 사용하여 데이터베이스와 상호작용합니다.

- 참조번호 발급 (IB-/OB-/ADJ- + 5자리 순번)
- 거래 생성 (이동 출고 시 도착 창고 입고 미러 포함)
- 헤더/상세 수정, 다음 단계 진행, 삭제
"""

import logging
import uuid
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar, Union

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.crud_base import CRUDBase
from app.core.exceptions import (
    InventoryError,
    NotFoundError,
    PartialFailure,
    ReferenceNumberConflict,
    ValidationError,
    store_errors,
)
from app.domains.inv import models as inv_models
from app.domains.inv import schemas as inv_schemas
from app.domains.inv.policy import get_next_status, validate_status

logger = logging.getLogger(__name__)

T = TypeVar("T")

REFERENCE_PREFIXES = {
    inv_models.TransactionType.INBOUND: "IB-",
    inv_models.TransactionType.OUTBOUND: "OB-",
}
DEFAULT_REFERENCE_PREFIX = "ADJ-"
REFERENCE_DIGITS = 5
# 순번 조회 시 한 번에 살펴볼 후보 수 (비숫자 접미사 건너뛰기용)
REFERENCE_SCAN_LIMIT = 20


# =============================================================================
# 1. 참조번호
# =============================================================================
def reference_prefix(transaction_type: Union[inv_models.TransactionType, str]) -> str:
    """Inbound -> IB-, Outbound -> OB-, 그 외 -> ADJ-"""
    try:
        tx_type = inv_models.TransactionType(transaction_type)
    except ValueError:
        return DEFAULT_REFERENCE_PREFIX
    return REFERENCE_PREFIXES.get(tx_type, DEFAULT_REFERENCE_PREFIX)


def format_reference_number(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{REFERENCE_DIGITS}d}"


def parse_reference_sequence(reference_number: Optional[str], prefix: str) -> Optional[int]:
    """접두사 뒤가 숫자로만 이루어진 경우 그 순번을, 아니면 None 을 반환합니다."""
    if not reference_number or not reference_number.startswith(prefix):
        return None
    suffix = reference_number[len(prefix):]
    return int(suffix) if suffix.isdigit() else None


def add_business_days(start: date, days: int) -> date:
    """토/일요일을 건너뛰고 영업일 기준으로 날짜를 더합니다."""
    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if current.weekday() < 5:
            added += 1
    return current


def _is_reference_conflict(exc: IntegrityError) -> bool:
    # PostgreSQL: ... constraint "transaction_header_reference_number_key"
    # SQLite: UNIQUE constraint failed: transaction_header.reference_number
    return "reference_number" in str(getattr(exc, "orig", exc))


# =============================================================================
# 2. 이동 입고 미러
# =============================================================================
def build_transfer_mirror(
    primary: inv_models.TransactionHeader,
    obj_in: inv_schemas.TransactionCreate,
    *,
    reference_number: str,
    lead_business_days: int,
) -> Tuple[inv_models.TransactionHeader, List[inv_models.TransactionDetail]]:
    """
    이동 출고(primary)에 대응하는 도착 창고의 입고 거래를 만듭니다. DB 에는 쓰지 않습니다.

    - 입고일: transfer.transfer_date, 없으면 출고일 + 영업일 lead_business_days
    - 라인 상태: 항상 Pending (아직 도착하지 않음)
    - 재고 구분: transfer.to_inventory_status, 없으면 출고 라인과 동일
    """
    transfer = obj_in.transfer
    mirror_date = transfer.transfer_date or add_business_days(obj_in.transaction_date, lead_business_days)
    inventory_status = transfer.to_inventory_status or obj_in.inventory_status

    mirror = inv_models.TransactionHeader(
        transaction_type=inv_models.TransactionType.INBOUND.value,
        transaction_date=mirror_date,
        warehouse=transfer.to_warehouse,
        reference_type=inv_models.TRANSFER_ORDER,
        reference_number=reference_number,
        shipment_carrier=primary.shipment_carrier,
        shipping_document=primary.shipping_document,
        comments=primary.comments,
        related_transaction_id=primary.transaction_id,
    )
    details = [
        inv_models.TransactionDetail(
            transaction_id=mirror.transaction_id,
            item_name=item.item_name,
            quantity=item.quantity,
            inventory_status=inventory_status.value,
            status=inv_models.TransactionStatus.PENDING.value,
            lot_number=item.lot_number,
            comments=item.comments,
        )
        for item in obj_in.items
    ]
    return mirror, details


# =============================================================================
# 3. 거래 헤더 CRUD
# =============================================================================
class TransactionHeaderCRUD(
    CRUDBase[
        inv_models.TransactionHeader,
        inv_schemas.TransactionCreate,
        inv_schemas.TransactionHeaderUpdate,
    ]
):
    """
    TransactionHeader 모델에 특화된 CRUD 작업을 처리합니다.
    참조번호 발급과 이동 미러 생성을 포함합니다.
    """

    # --- 조회 ---
    async def get_with_details(
        self, db: AsyncSession, transaction_id: uuid.UUID
    ) -> Optional[inv_models.TransactionHeader]:
        query = (
            select(inv_models.TransactionHeader)
            .where(inv_models.TransactionHeader.transaction_id == transaction_id)
            .options(selectinload(inv_models.TransactionHeader.details))
            .execution_options(populate_existing=True)
        )
        with store_errors(idempotent=True):
            result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_404(self, db: AsyncSession, transaction_id: uuid.UUID) -> inv_models.TransactionHeader:
        header = await self.get_with_details(db, transaction_id)
        if header is None:
            raise NotFoundError("Transaction", transaction_id)
        return header

    async def get_mirror(
        self, db: AsyncSession, transaction_id: uuid.UUID
    ) -> Optional[inv_models.TransactionHeader]:
        """이동 출고에 연결된 입고 미러를 찾습니다."""
        query = (
            select(inv_models.TransactionHeader)
            .where(
                inv_models.TransactionHeader.related_transaction_id == transaction_id,
                inv_models.TransactionHeader.reference_type == inv_models.TRANSFER_ORDER,
            )
            .options(selectinload(inv_models.TransactionHeader.details))
            .execution_options(populate_existing=True)
            .limit(1)
        )
        with store_errors(idempotent=True):
            result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_multi_with_details(
        self,
        db: AsyncSession,
        *,
        warehouse: Optional[str] = None,
        transaction_type: Optional[inv_models.TransactionType] = None,
        reference_type: Optional[str] = None,
        item_name: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[inv_models.TransactionHeader]:
        conditions = []
        if item_name is not None:
            conditions.append(
                inv_models.TransactionHeader.details.any(inv_models.TransactionDetail.item_name == item_name)
            )
        with store_errors(idempotent=True):
            return await self.get_filtered(
                db,
                filters={
                    "warehouse": warehouse,
                    "transaction_type": transaction_type.value if transaction_type else None,
                    "reference_type": reference_type,
                },
                date_range_field="transaction_date",
                start_date=start_date,
                end_date=end_date,
                order_by_field="transaction_date",
                order_desc=True,
                skip=skip,
                limit=limit,
                options=[selectinload(inv_models.TransactionHeader.details)],
                conditions=conditions,
                populate_existing=True,
            )

    async def get_pending_transactions(
        self, db: AsyncSession, *, warehouse: str, cutoff: date
    ) -> List[inv_models.TransactionHeader]:
        """기준일 이전 거래 중 Pending 라인이 남아 있는 거래 (오래된 순)"""
        query = (
            select(inv_models.TransactionHeader)
            .where(
                inv_models.TransactionHeader.warehouse == warehouse,
                inv_models.TransactionHeader.transaction_date <= cutoff,
                inv_models.TransactionHeader.details.any(
                    inv_models.TransactionDetail.status == inv_models.TransactionStatus.PENDING.value
                ),
            )
            .options(selectinload(inv_models.TransactionHeader.details))
            .execution_options(populate_existing=True)
            .order_by(inv_models.TransactionHeader.transaction_date, inv_models.TransactionHeader.reference_number)
        )
        with store_errors(idempotent=True):
            result = await db.execute(query)
        return list(result.scalars().all())

    # --- 참조번호 ---
    async def next_reference_number(
        self, db: AsyncSession, transaction_type: Union[inv_models.TransactionType, str]
    ) -> str:
        """
        접두사별 가장 큰 순번 다음 번호를 만듭니다.
        'ADJ-COUNT-...' 처럼 접두사 뒤에 하위 형식이 붙은 번호는 건너뜁니다.
        """
        prefix = reference_prefix(transaction_type)
        column = inv_models.TransactionHeader.reference_number
        query = (
            select(column)
            .where(column.like(f"{prefix}%"), ~column.like(f"{prefix}%-%"))
            .order_by(func.length(column).desc(), column.desc())
            .limit(REFERENCE_SCAN_LIMIT)
        )
        result = await db.execute(query)
        last_sequence = 0
        for reference_number in result.scalars().all():
            sequence = parse_reference_sequence(reference_number, prefix)
            if sequence is not None:
                last_sequence = sequence
                break
        return format_reference_number(prefix, last_sequence + 1)

    async def run_unit_of_work(
        self,
        db: AsyncSession,
        work: Callable[[int], Awaitable[T]],
        *,
        prefix: str,
    ) -> T:
        """
        참조번호를 발급하는 쓰기 작업을 한 번의 커밋으로 실행합니다.
        참조번호 UNIQUE 제약 위반이면 롤백 후 다시 발급해 재시도합니다.
        work 는 시도 번호(1부터)를 인자로 받습니다.
        """
        attempts = settings.REFERENCE_NUMBER_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                with store_errors():
                    result = await work(attempt)
                    await db.commit()
                return result
            except IntegrityError as e:
                await db.rollback()
                if not _is_reference_conflict(e):
                    logger.warning("Ledger write rejected by a store constraint: %s", e.orig)
                    raise ValidationError("The transaction violates a data store constraint.") from e
                logger.warning("Reference number collision on '%s' (attempt %d/%d)", prefix, attempt, attempts)
            except Exception:
                await db.rollback()
                raise
        logger.error("Reference number retries exhausted for prefix '%s'", prefix)
        raise ReferenceNumberConflict(prefix, attempts)

    async def insert_header_with_details(
        self,
        db: AsyncSession,
        header: inv_models.TransactionHeader,
        details: List[inv_models.TransactionDetail],
    ) -> inv_models.TransactionHeader:
        """헤더를 먼저 flush 한 뒤 상세 라인을 추가합니다. 커밋은 호출자가 합니다."""
        db.add(header)
        await db.flush()
        for detail in details:
            detail.transaction_id = header.transaction_id
            db.add(detail)
        await db.flush()
        return header

    # --- 생성 ---
    def _validate_create(self, obj_in: inv_schemas.TransactionCreate) -> None:
        validate_status(obj_in.status, obj_in.transaction_type)
        if not obj_in.items:
            raise ValidationError("A transaction requires at least one item.", field="items")
        for item in obj_in.items:
            if item.quantity < 0:
                raise ValidationError("Quantity must be zero or greater.", field="quantity", value=item.quantity)

    def _wants_mirror(self, obj_in: inv_schemas.TransactionCreate) -> bool:
        return (
            obj_in.reference_type == inv_models.TRANSFER_ORDER
            and obj_in.transfer is not None
            and bool(obj_in.transfer.to_warehouse)
        )

    async def _add_primary(
        self, db: AsyncSession, obj_in: inv_schemas.TransactionCreate
    ) -> inv_models.TransactionHeader:
        header = inv_models.TransactionHeader(
            transaction_type=obj_in.transaction_type.value,
            transaction_date=obj_in.transaction_date,
            warehouse=obj_in.warehouse,
            reference_type=obj_in.reference_type,
            reference_number=await self.next_reference_number(db, obj_in.transaction_type),
            shipment_carrier=obj_in.shipment_carrier,
            shipping_document=obj_in.shipping_document,
            customer_po=obj_in.customer_po,
            customer_name=obj_in.customer_name,
            comments=obj_in.comments,
            related_transaction_id=obj_in.related_transaction_id,
        )
        details = [
            inv_models.TransactionDetail(
                transaction_id=header.transaction_id,
                item_name=item.item_name,
                quantity=item.quantity,
                inventory_status=obj_in.inventory_status.value,
                status=obj_in.status.value,
                adjustment_direction=item.adjustment_direction.value,
                lot_number=item.lot_number,
                comments=item.comments,
            )
            for item in obj_in.items
        ]
        return await self.insert_header_with_details(db, header, details)

    async def _add_mirror(
        self,
        db: AsyncSession,
        primary: inv_models.TransactionHeader,
        obj_in: inv_schemas.TransactionCreate,
    ) -> inv_models.TransactionHeader:
        inbound_prefix = reference_prefix(inv_models.TransactionType.INBOUND)
        sequence = parse_reference_sequence(primary.reference_number, reference_prefix(primary.transaction_type))
        if settings.TRANSFER_MIRROR_SHARES_SUFFIX and sequence is not None:
            reference_number = format_reference_number(inbound_prefix, sequence)
        else:
            reference_number = await self.next_reference_number(db, inv_models.TransactionType.INBOUND)

        mirror, details = build_transfer_mirror(
            primary,
            obj_in,
            reference_number=reference_number,
            lead_business_days=settings.TRANSFER_LEAD_BUSINESS_DAYS,
        )
        return await self.insert_header_with_details(db, mirror, details)

    async def create_transaction(
        self, db: AsyncSession, *, obj_in: inv_schemas.TransactionCreate
    ) -> inv_models.TransactionHeader:
        """
        새 거래(헤더 + 상세 라인)를 생성합니다.
        참조 유형이 'Transfer Order' 이고 도착 창고가 있으면 입고 미러도 함께 생성합니다.
        """
        self._validate_create(obj_in)
        if obj_in.related_transaction_id is not None:
            with store_errors(idempotent=True):
                related = await self.get(db, obj_in.related_transaction_id)
            if related is None:
                raise NotFoundError("Transaction", obj_in.related_transaction_id)

        prefix = reference_prefix(obj_in.transaction_type)
        wants_mirror = self._wants_mirror(obj_in)
        if wants_mirror and not settings.ATOMIC_TRANSFERS:
            return await self._create_transfer_saga(db, obj_in)

        async def work(attempt: int) -> inv_models.TransactionHeader:
            primary = await self._add_primary(db, obj_in)
            if wants_mirror:
                await self._add_mirror(db, primary, obj_in)
            return primary

        header = await self.run_unit_of_work(db, work, prefix=prefix)
        logger.info(
            "Created %s transaction %s (%s) with %d line(s)%s",
            header.transaction_type,
            header.reference_number,
            header.transaction_id,
            len(obj_in.items),
            " and transfer mirror" if wants_mirror else "",
        )
        return await self.get_with_details(db, header.transaction_id)

    async def _create_transfer_saga(
        self, db: AsyncSession, obj_in: inv_schemas.TransactionCreate
    ) -> inv_models.TransactionHeader:
        """출고를 먼저 커밋하고 미러를 별도로 커밋합니다. 미러 실패 시 출고를 삭제해 보상합니다."""
        async def write_primary(attempt: int) -> inv_models.TransactionHeader:
            return await self._add_primary(db, obj_in)

        primary = await self.run_unit_of_work(db, write_primary, prefix=reference_prefix(obj_in.transaction_type))
        logger.info("Committed transfer primary %s (%s)", primary.reference_number, primary.transaction_id)

        async def write_mirror(attempt: int) -> inv_models.TransactionHeader:
            return await self._add_mirror(db, primary, obj_in)

        try:
            await self.run_unit_of_work(
                db, write_mirror, prefix=reference_prefix(inv_models.TransactionType.INBOUND)
            )
        except (InventoryError, SQLAlchemyError) as e:
            logger.error("Transfer mirror for %s failed: %s", primary.reference_number, e)
            compensated = await self._compensate(db, primary.transaction_id)
            raise PartialFailure(
                f"Transfer {primary.reference_number} was written but its inbound mirror failed.",
                completed_steps=["primary"],
                failed_step="mirror",
                compensated=compensated,
                transaction_id=primary.transaction_id,
            ) from e
        return await self.get_with_details(db, primary.transaction_id)

    async def _compensate(self, db: AsyncSession, transaction_id: uuid.UUID) -> bool:
        try:
            with store_errors():
                await db.execute(
                    delete(inv_models.TransactionDetail).where(
                        inv_models.TransactionDetail.transaction_id == transaction_id
                    )
                )
                await db.execute(
                    delete(inv_models.TransactionHeader).where(
                        inv_models.TransactionHeader.transaction_id == transaction_id
                    )
                )
                await db.commit()
        except (InventoryError, SQLAlchemyError):
            await db.rollback()
            logger.exception("Compensation failed; transaction %s is orphaned", transaction_id)
            return False
        logger.warning("Compensated transfer primary %s", transaction_id)
        return True

    # --- 수정 ---
    async def update_transaction_header(
        self,
        db: AsyncSession,
        *,
        transaction_id: uuid.UUID,
        obj_in: inv_schemas.TransactionHeaderUpdate,
    ) -> inv_models.TransactionHeader:
        header = await self.get_or_404(db, transaction_id)
        update_data = obj_in.model_dump(exclude_unset=True)
        for field in ("transaction_date", "warehouse"):
            if field in update_data and update_data[field] is None:
                raise ValidationError(f"{field} cannot be null.", field=field)
        try:
            with store_errors():
                await self.update(db, db_obj=header, obj_in=obj_in)
        except Exception:
            await db.rollback()
            raise
        logger.info("Updated header %s fields %s", header.reference_number, sorted(update_data))
        return await self.get_with_details(db, transaction_id)

    async def advance_transaction(
        self, db: AsyncSession, *, transaction_id: uuid.UUID
    ) -> inv_schemas.AdvanceResult:
        """
        Pending 라인을 거래 유형의 다음 상태로 한 번의 UPDATE 로 전환합니다.
        Pending 라인이 없으면 updated_count=0 으로 성공합니다.
        """
        with store_errors(idempotent=True):
            header = await self.get(db, transaction_id)
        if header is None:
            raise NotFoundError("Transaction", transaction_id)
        next_status = get_next_status(header.transaction_type)
        if next_status is None:
            raise ValidationError(
                f'No next step is defined for transaction type "{header.transaction_type}".',
                field="transaction_type",
                value=header.transaction_type,
            )

        statement = (
            update(inv_models.TransactionDetail)
            .where(
                inv_models.TransactionDetail.transaction_id == transaction_id,
                inv_models.TransactionDetail.status == inv_models.TransactionStatus.PENDING.value,
            )
            .values(status=next_status.value)
        )
        try:
            with store_errors():
                result = await db.execute(statement)
                await db.commit()
        except Exception:
            await db.rollback()
            raise
        updated_count = result.rowcount or 0
        logger.info("Advanced %s: %d line(s) -> %s", header.reference_number, updated_count, next_status.value)
        return inv_schemas.AdvanceResult(
            transaction_id=transaction_id,
            reference_number=header.reference_number,
            next_status=next_status,
            updated_count=updated_count,
        )

    # --- 삭제 ---
    async def delete_transaction(self, db: AsyncSession, *, transaction_id: uuid.UUID) -> None:
        header = await self.get_or_404(db, transaction_id)
        reference_number = header.reference_number
        try:
            with store_errors():
                await db.delete(header)
                await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Deleted transaction %s (%s)", reference_number, transaction_id)


# =============================================================================
# 4. 거래 상세 CRUD
# =============================================================================
class TransactionDetailCRUD(
    CRUDBase[
        inv_models.TransactionDetail,
        inv_schemas.TransactionItemCreate,
        inv_schemas.TransactionDetailUpdate,
    ]
):
    NON_NULLABLE_FIELDS = ("item_name", "quantity", "inventory_status", "status", "adjustment_direction")

    async def _get_owned(
        self, db: AsyncSession, transaction_id: uuid.UUID, detail_id: uuid.UUID
    ) -> Tuple[inv_models.TransactionHeader, inv_models.TransactionDetail]:
        with store_errors(idempotent=True):
            header = await db.get(inv_models.TransactionHeader, transaction_id)
            detail = await db.get(inv_models.TransactionDetail, detail_id)
        if header is None:
            raise NotFoundError("Transaction", transaction_id)
        if detail is None or detail.transaction_id != transaction_id:
            raise NotFoundError("Transaction detail", detail_id)
        return header, detail

    async def update_transaction_detail(
        self,
        db: AsyncSession,
        *,
        transaction_id: uuid.UUID,
        detail_id: uuid.UUID,
        obj_in: inv_schemas.TransactionDetailUpdate,
    ) -> inv_models.TransactionDetail:
        """상세 라인을 수정합니다. 새 상태는 소속 헤더의 거래 유형으로 다시 검증합니다."""
        header, detail = await self._get_owned(db, transaction_id, detail_id)
        update_data = obj_in.model_dump(exclude_unset=True)
        for field in self.NON_NULLABLE_FIELDS:
            if field in update_data and update_data[field] is None:
                raise ValidationError(f"{field} cannot be null.", field=field)
        if "status" in update_data:
            validate_status(update_data["status"], header.transaction_type)

        values: Dict[str, Any] = {
            key: getattr(value, "value", value) for key, value in update_data.items()
        }
        try:
            with store_errors():
                for key, value in values.items():
                    setattr(detail, key, value)
                db.add(detail)
                await db.commit()
                await db.refresh(detail)
        except Exception:
            await db.rollback()
            raise
        logger.info("Updated detail %s of %s fields %s", detail_id, header.reference_number, sorted(values))
        return detail

    async def delete_transaction_detail(
        self,
        db: AsyncSession,
        *,
        transaction_id: uuid.UUID,
        detail_id: uuid.UUID,
    ) -> bool:
        """
        상세 라인 하나를 삭제합니다. 마지막 라인이었다면 헤더도 함께 삭제하고 True 를 반환합니다.
        """
        header, detail = await self._get_owned(db, transaction_id, detail_id)
        reference_number = header.reference_number
        try:
            with store_errors():
                remaining = await db.scalar(
                    select(func.count())
                    .select_from(inv_models.TransactionDetail)
                    .where(
                        inv_models.TransactionDetail.transaction_id == transaction_id,
                        inv_models.TransactionDetail.detail_id != detail_id,
                    )
                )
                header_deleted = not remaining
                if header_deleted:
                    # 헤더 삭제가 라인까지 cascade 하도록 관계를 새로 읽게 합니다.
                    db.expire(header, ["details"])
                    await db.delete(header)
                else:
                    await db.delete(detail)
                await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Deleted detail %s of %s%s", detail_id, reference_number,
            " (last line, header removed)" if header_deleted else "",
        )
        return header_deleted


#  각 CRUD 클래스의 인스턴스 생성
transaction_header = TransactionHeaderCRUD(inv_models.TransactionHeader)
transaction_detail = TransactionDetailCRUD(inv_models.TransactionDetail)
