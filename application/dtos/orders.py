"""
Order DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_serializer
from pydantic.types import condecimal

from domain.order.entity import Order, PaymentMethod, ShippingMethod
from domain.order.state_machine import OrderStatus


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


class Principal(BaseModel):
    """认证协作方交给核心的已验证身份"""
    user_id: str
    email: Optional[str] = None
    is_admin: bool = False

    model_config = ConfigDict(frozen=True)


class AddressDTO(DTOBase):
    city: str = Field(..., min_length=1)
    country: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None


class OrderLineDTO(DTOBase):
    book_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)


class OrderCreateDTO(DTOBase):
    """下单DTO；价格与标题由图书目录快照，不信任客户端"""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(..., min_length=3, max_length=32)
    address: AddressDTO
    products: list[OrderLineDTO] = Field(..., min_length=1)
    total_price: condecimal(ge=0, allow_inf_nan=False)  # type: ignore[valid-type]
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    special_instructions: str = Field(default="", max_length=1000)

    @field_validator("phone")
    @classmethod
    def _digits_only(cls, v: str) -> str:
        s = v.replace(" ", "").replace("-", "")
        if not s.lstrip("+").isdigit():
            raise ValueError("phone must contain digits only")
        return s


class RefundRequestDTO(DTOBase):
    refund_reason: str = Field(..., description="退款原因")


class StatusUpdateDTO(DTOBase):
    status: OrderStatus


class LineItemResponseDTO(DTOBase):
    book_id: str
    title: str
    price: Decimal
    quantity: int


class PaymentReferenceDTO(DTOBase):
    method: str
    transaction_id: str
    reference_id: Optional[str] = None
    status: str
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderResponseDTO(DTOBase):
    id: str
    email: str
    name: str
    phone: str
    address: AddressDTO
    products: list[LineItemResponseDTO]
    total_price: Decimal
    status: OrderStatus
    payment_method: PaymentMethod
    payment_reference: Optional[PaymentReferenceDTO] = None
    shipping_method: ShippingMethod
    special_instructions: str = ""
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int

    @classmethod
    def from_entity(cls, order: Order) -> "OrderResponseDTO":
        ref = order.payment_reference
        return cls(
            id=order.id,
            email=order.email,
            name=order.name,
            phone=order.phone,
            address=AddressDTO(**order.address.to_dict()),
            products=[
                LineItemResponseDTO(
                    book_id=item.book_id,
                    title=item.title,
                    price=item.price,
                    quantity=item.quantity,
                )
                for item in order.products
            ],
            total_price=order.total_price,
            status=order.status,
            payment_method=order.payment_method,
            payment_reference=PaymentReferenceDTO(
                method=ref.method,
                transaction_id=ref.transaction_id,
                reference_id=ref.reference_id,
                status=ref.status,
                completed_at=ref.completed_at,
                updated_at=ref.updated_at,
            ) if ref else None,
            shipping_method=order.shipping_method,
            special_instructions=order.special_instructions,
            cancelled_at=order.cancelled_at,
            refunded_at=order.refunded_at,
            refund_reason=order.refund_reason,
            created_at=order.created_at,
            updated_at=order.updated_at,
            version=order.version,
        )


class CancelResultDTO(DTOBase):
    message: str
    order: OrderResponseDTO


class ResetResultDTO(DTOBase):
    deleted_count: int
    message: str


class BookSnapshot(BaseModel):
    """图书目录查询结果"""
    id: str
    title: str
    price: Decimal

    model_config = ConfigDict(extra="ignore")
