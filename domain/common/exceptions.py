"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Iterable, Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class InvalidTransitionException(BusinessException):
    """状态机守卫不满足；携带当前状态以便调用方给出准确提示"""

    def __init__(self, current_status: str, event: str, message: Optional[str] = None):
        super().__init__(
            code=BusinessCode.INVALID_TRANSITION,
            message=message or f"Cannot {event} order with status: {current_status}",
            error_type="InvalidTransition",
            details={"current_status": current_status, "event": event},
            field="status",
        )
        self.current_status = current_status
        self.event = event


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[str] = None):
        details = {"order_id": order_id} if order_id else None
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="NotFound",
            details=details,
        )


class BookNotFoundException(BusinessException):
    def __init__(self, book_id: str):
        super().__init__(
            code=BusinessCode.BOOK_NOT_FOUND,
            message=f"Book {book_id} not found",
            error_type="NotFound",
            details={"book_id": book_id},
            field="products",
        )


class ConcurrentModificationException(BusinessException):
    def __init__(self, order_id: str, expected_version: int):
        super().__init__(
            code=BusinessCode.CONCURRENT_MODIFICATION,
            message="Order was modified concurrently, reload and retry",
            error_type="ConcurrentModification",
            details={"order_id": order_id, "expected_version": expected_version},
        )


class PermissionDeniedException(BusinessException):
    def __init__(self, message: str = "Not allowed to access this order"):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=message,
            error_type="Forbidden",
        )


class SignatureEncodingException(BusinessException):
    def __init__(self, name: object):
        super().__init__(
            code=PaymentCode.ENCODING_ERROR,
            message=f"Signed field {name!r} must be a string",
            error_type="EncodingError",
            details={"field": repr(name)},
        )


class InvalidAmountException(BusinessException):
    def __init__(self, amount: object):
        super().__init__(
            code=PaymentCode.INVALID_AMOUNT,
            message=f"Invalid payment amount: {amount}",
            error_type="InvalidAmount",
            details={"amount": str(amount)},
            field="total_price",
        )


class MissingFieldsException(BusinessException):
    def __init__(self, fields: Iterable[str]):
        missing = list(fields)
        super().__init__(
            code=PaymentCode.MISSING_FIELDS,
            message=f"Missing required fields: {', '.join(missing)}",
            error_type="MissingFields",
            details={"missing": missing},
        )
        self.missing = missing


class InvalidSignatureException(BusinessException):
    def __init__(self, reason: str = "Invalid payment signature"):
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message="Invalid payment signature",
            error_type="InvalidSignature",
            details={"reason": reason},
        )


class MalformedIdException(BusinessException):
    def __init__(self, value: object):
        super().__init__(
            code=PaymentCode.MALFORMED_ID,
            message="Invalid transaction ID format",
            error_type="MalformedId",
            details={"transaction_uuid": str(value)},
            field="transaction_uuid",
        )


class GatewayUnavailableException(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.GATEWAY_UNAVAILABLE,
            message=message,
            error_type="GatewayUnavailable",
            details=full_details,
        )
