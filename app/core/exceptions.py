# app/core/exceptions.py

"""
재고 원장(ledger) 작업에서 발생하는 오류를 타입별로 정의하는 모듈입니다.

모든 예외는 InventoryError 를 상속하며 다음을 갖습니다.
- code: API 응답에 실리는 기계 판독용 코드
- status_code: FastAPI 예외 처리기가 사용할 HTTP 상태 코드
- extra(): 응답 본문에 함께 실릴 구조화된 데이터

오류 분류:
- ValidationError: 상태/유형 불일치, 잘못된 입력. 어떤 쓰기보다도 먼저 발생합니다.
- NotFoundError: 거래 또는 상세 라인이 존재하지 않음.
- PermissionDenied: 정책 계층 또는 DB(SQLSTATE 42501)가 쓰기를 거부함.
- PartialFailure: 여러 단계로 이루어진 쓰기가 일부만 완료됨.
- TransientStoreError: 네트워크/DB 일시 장애. 멱등 읽기만 재시도 안전.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional
from uuid import UUID

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

logger = logging.getLogger(__name__)

# PostgreSQL insufficient_privilege
PERMISSION_DENIED_SQLSTATE = "42501"


class InventoryError(Exception):
    """모든 재고 원장 예외의 기본 클래스입니다."""

    code: str = "INVENTORY_ERROR"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extra(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra()}


class ValidationError(InventoryError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value

    def extra(self) -> Dict[str, Any]:
        return {"field": self.field, "value": None if self.value is None else str(self.value)}


class NotFoundError(InventoryError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} '{identifier}' not found.")
        self.resource = resource
        self.identifier = identifier


class PermissionDenied(InventoryError):
    code = "PERMISSION_DENIED"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "You do not have permission to perform this action.", *, action: Optional[str] = None):
        super().__init__(message)
        self.action = action

    def extra(self) -> Dict[str, Any]:
        return {"action": self.action}


class PartialFailure(InventoryError):
    """
    다단계 쓰기(예: 이동 출고 + 입고 미러)가 일부 단계만 커밋된 상태를 나타냅니다.
    completed_steps 로 어떤 단계가 끝났는지, compensated 로 보상(롤백) 여부를 전달합니다.
    """

    code = "PARTIAL_FAILURE"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        completed_steps: List[str],
        failed_step: str,
        compensated: bool,
        transaction_id: Optional[UUID] = None,
    ):
        super().__init__(message)
        self.completed_steps = list(completed_steps)
        self.failed_step = failed_step
        self.compensated = compensated
        self.transaction_id = transaction_id

    def extra(self) -> Dict[str, Any]:
        return {
            "completed_steps": self.completed_steps,
            "failed_step": self.failed_step,
            "compensated": self.compensated,
            "transaction_id": str(self.transaction_id) if self.transaction_id else None,
        }


class TransientStoreError(InventoryError):
    code = "STORE_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable

    def extra(self) -> Dict[str, Any]:
        return {"retryable": self.retryable}


class ReferenceNumberConflict(TransientStoreError):
    code = "REFERENCE_NUMBER_CONFLICT"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, prefix: str, attempts: int):
        super().__init__(
            f"Could not mint a unique reference number with prefix '{prefix}' after {attempts} attempts.",
            retryable=False,
        )
        self.prefix = prefix
        self.attempts = attempts

    def extra(self) -> Dict[str, Any]:
        return {**super().extra(), "prefix": self.prefix, "attempts": self.attempts}


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_store_error(exc: Exception, *, idempotent: bool = False) -> Exception:
    """
    SQLAlchemy 예외를 재고 원장 예외로 변환합니다.
    변환 대상이 아니면 원래 예외를 그대로 돌려주므로 호출자는 `raise translate_store_error(e) from e` 로 사용합니다.
    """
    if isinstance(exc, InventoryError):
        return exc
    if isinstance(exc, DBAPIError) and _sqlstate(exc) == PERMISSION_DENIED_SQLSTATE:
        return PermissionDenied("The data store rejected the write: insufficient privilege.")
    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError)):
        return TransientStoreError(f"Data store unavailable: {exc.__class__.__name__}", retryable=idempotent)
    return exc


@contextmanager
def store_errors(*, idempotent: bool = False) -> Iterator[None]:
    """
    블록 안에서 발생한 DB 예외를 translate_store_error 로 변환해 다시 발생시킵니다.
    IntegrityError 처럼 변환 대상이 아닌 예외는 그대로 전파됩니다.
    """
    try:
        yield
    except (DBAPIError, PoolTimeoutError) as exc:
        translated = translate_store_error(exc, idempotent=idempotent)
        if translated is exc:
            raise
        raise translated from exc


async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """InventoryError 계열 예외를 JSON 응답으로 변환하는 처리기를 등록합니다."""
    app.add_exception_handler(InventoryError, inventory_error_handler)
