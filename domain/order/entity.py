"""
订单领域实体 - 订单聚合根
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import List, Optional
import uuid

from domain.common.exceptions import DomainValidationException, InvalidTransitionException
from shared.codes.payment_codes import GATEWAY_STATUS_TO_REFERENCE
from .state_machine import OrderEvent, OrderStatus, next_status, event_for_admin_target


class PaymentMethod(str, Enum):
    """支付方式枚举；ESEWA 为唯一参与签名协议的外部网关"""
    CASH_ON_DELIVERY = "Cash on Delivery"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    PAYPAL = "PayPal"
    ESEWA = "eSewa"


EXTERNAL_GATEWAY = PaymentMethod.ESEWA


class PaymentReferenceStatus(str, Enum):
    """网关侧支付状态（与 Order.status 相互独立）"""
    INITIATED = "initiated"
    PENDING = "pending"
    COMPLETE = "complete"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"
    REFUNDED = "refunded"


class ShippingMethod(str, Enum):
    STANDARD = "Standard"
    EXPRESS = "Express"
    OVERNIGHT = "Overnight"


CANCEL_REFUND_REASON = "Order cancelled by customer"
GATEWAY_COMPLETE = "COMPLETE"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_decimal(value, field_name: str) -> Decimal:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise DomainValidationException(f"{field_name} 必须是数字: {value}", field=field_name) from None
    if not result.is_finite():
        raise DomainValidationException(f"{field_name} 必须是有限数值: {value}", field=field_name)
    return result


def new_order_id() -> str:
    """订单ID即网关 transaction_uuid"""
    return str(uuid.uuid4())


def is_well_formed_order_id(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False


@dataclass
class Address:
    city: str
    country: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None

    def __post_init__(self):
        if not self.city or not str(self.city).strip():
            raise DomainValidationException("收货城市不能为空", field="address.city")

    def to_dict(self) -> dict:
        return {"city": self.city, "country": self.country, "state": self.state, "zipcode": self.zipcode}

    @classmethod
    def from_dict(cls, data: dict) -> "Address":
        return cls(
            city=data.get("city"),
            country=data.get("country"),
            state=data.get("state"),
            zipcode=data.get("zipcode"),
        )


@dataclass
class LineItem:
    """下单时的商品快照；价格不再回读目录"""
    book_id: str
    title: str
    price: Decimal
    quantity: int = 1

    def __post_init__(self):
        self.price = _to_decimal(self.price, "price")
        if self.price < 0:
            raise DomainValidationException(f"商品价格不能为负: {self.price}", field="price")
        if int(self.quantity) < 1:
            raise DomainValidationException(f"商品数量必须至少为1: {self.quantity}", field="quantity")
        self.quantity = int(self.quantity)

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        return {"book_id": self.book_id, "title": self.title, "price": str(self.price), "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        return cls(
            book_id=data["book_id"],
            title=data.get("title") or "",
            price=data["price"],
            quantity=data.get("quantity", 1),
        )


@dataclass
class PaymentReference:
    """网关支付引用 - Order 聚合的一部分"""
    method: str
    transaction_id: str
    status: str = PaymentReferenceStatus.INITIATED.value
    reference_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = str(getattr(self.status, "value", self.status))
        self.completed_at = _ensure_utc(self.completed_at)
        self.updated_at = _ensure_utc(self.updated_at)

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "transaction_id": self.transaction_id,
            "reference_id": self.reference_id,
            "status": self.status,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentReference":
        def _dt(value):
            if not value:
                return None
            return value if isinstance(value, datetime) else datetime.fromisoformat(value)

        return cls(
            method=data.get("method") or EXTERNAL_GATEWAY.value,
            transaction_id=data.get("transaction_id") or "",
            reference_id=data.get("reference_id"),
            status=data.get("status") or PaymentReferenceStatus.INITIATED.value,
            completed_at=_dt(data.get("completed_at")),
            updated_at=_dt(data.get("updated_at")),
        )


@dataclass
class Order:
    """
    订单聚合根 - 管理订单生命周期

    业务规则：
    1. 总价不能为负，且创建时必须与明细之和一致
    2. 所有状态变化都经过状态机转换表
    3. 网关侧支付状态（payment_reference.status）与订单状态分开记录
    4. version 单调递增，持久化时做比较并交换
    """

    id: str
    email: str
    name: str
    phone: str
    address: Address
    products: List[LineItem]
    total_price: Decimal
    status: OrderStatus = OrderStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    payment_reference: Optional[PaymentReference] = None
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    special_instructions: str = ""

    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # 0 表示尚未持久化
    version: int = 0

    def __post_init__(self):
        self.total_price = _to_decimal(self.total_price, "total_price")
        if self.total_price < 0:
            raise DomainValidationException(f"订单总价不能为负: {self.total_price}", field="total_price")
        self.status = OrderStatus(self.status)
        self.payment_method = PaymentMethod(self.payment_method)
        self.shipping_method = ShippingMethod(self.shipping_method)
        self.cancelled_at = _ensure_utc(self.cancelled_at)
        self.refunded_at = _ensure_utc(self.refunded_at)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @classmethod
    def create(
        cls,
        *,
        email: str,
        name: str,
        phone: str,
        address: Address,
        products: List[LineItem],
        total_price: Decimal,
        payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY,
        shipping_method: ShippingMethod = ShippingMethod.STANDARD,
        special_instructions: str = "",
        order_id: Optional[str] = None,
    ) -> "Order":
        """创建待处理订单，并校验总价与明细一致"""
        if not email:
            raise DomainValidationException("邮箱不能为空", field="email")
        if not products:
            raise DomainValidationException("订单至少包含一件商品", field="products")
        now = _utcnow()
        order = cls(
            id=order_id or new_order_id(),
            email=email,
            name=name,
            phone=phone,
            address=address,
            products=list(products),
            total_price=total_price,
            status=OrderStatus.PENDING,
            payment_method=payment_method,
            shipping_method=shipping_method,
            special_instructions=special_instructions or "",
            created_at=now,
            updated_at=now,
        )
        order.validate_total()
        return order

    @property
    def is_external_gateway(self) -> bool:
        return self.payment_method == EXTERNAL_GATEWAY

    def items_total(self) -> Decimal:
        return sum((item.subtotal for item in self.products), Decimal("0"))

    def validate_total(self, tolerance: Decimal = Decimal("0.01")) -> None:
        expected = self.items_total()
        if abs(expected - self.total_price) > tolerance:
            raise DomainValidationException(
                f"订单总价 {self.total_price} 与明细合计 {expected} 不一致",
                field="total_price",
                details={"total_price": str(self.total_price), "items_total": str(expected)},
            )

    def _transition(self, event: OrderEvent, now: Optional[datetime] = None, message: Optional[str] = None) -> None:
        self.status = next_status(self.status, event, message)
        self.updated_at = now or _utcnow()

    def cancel(self, now: Optional[datetime] = None) -> None:
        """
        取消订单

        业务规则：已发货或已送达的订单不可取消；eSewa 订单取消后网关侧引用即标记为 refunded，
        订单本身停留在 cancelled，直到退款流程完成
        """
        now = now or _utcnow()
        self._transition(
            OrderEvent.CANCEL,
            now,
            "Cannot cancel order that has already been shipped or delivered",
        )
        self.cancelled_at = now
        if self.is_external_gateway:
            if self.payment_reference is None:
                self.payment_reference = PaymentReference(
                    method=EXTERNAL_GATEWAY.value,
                    transaction_id=self.id,
                )
            self.payment_reference.status = PaymentReferenceStatus.REFUNDED.value
            self.payment_reference.updated_at = now
            self.refund_reason = CANCEL_REFUND_REASON
            self.refunded_at = now

    def request_refund(self, reason: Optional[str], now: Optional[datetime] = None) -> None:
        """
        申请退款

        业务规则：
        1. 退款原因不能为空
        2. 只有已取消的订单才能退款
        3. 货到付款订单不支持退款
        """
        if not reason or not reason.strip():
            raise DomainValidationException("Refund reason is required", field="refund_reason")
        if self.payment_method == PaymentMethod.CASH_ON_DELIVERY:
            raise InvalidTransitionException(
                self.status.value,
                OrderEvent.REQUEST_REFUND.value,
                "Cannot refund Cash on Delivery orders. Refunds are only available for online payment methods.",
            )
        self._transition(
            OrderEvent.REQUEST_REFUND,
            now,
            f"Cannot refund order with status: {self.status.value}. Only cancelled orders can be refunded.",
        )
        self.refund_reason = reason.strip()

    def approve_refund(self, now: Optional[datetime] = None) -> None:
        """批准退款（仅管理员）"""
        now = now or _utcnow()
        self._transition(
            OrderEvent.APPROVE_REFUND,
            now,
            f"Cannot approve refund for order with status: {self.status.value}. "
            "Only orders in refund_processing can be approved.",
        )
        self.refunded_at = now

    def update_status(self, new_status: OrderStatus, now: Optional[datetime] = None) -> None:
        """管理员推进正向流程：pending -> processing -> shipped -> delivered"""
        event = event_for_admin_target(self.status, new_status)
        self._transition(event, now)

    def mark_payment_initiated(self, now: Optional[datetime] = None) -> None:
        if self.status != OrderStatus.PENDING:
            raise InvalidTransitionException(
                self.status.value,
                "initiate_payment",
                f"Cannot start payment for order with status: {self.status.value}",
            )
        self.payment_method = EXTERNAL_GATEWAY
        self.payment_reference = PaymentReference(
            method=EXTERNAL_GATEWAY.value,
            transaction_id=self.id,
            status=PaymentReferenceStatus.INITIATED.value,
        )
        self.updated_at = now or _utcnow()

    def ensure_gateway_tracked(self) -> None:
        """只有已发起 eSewa 支付的订单才能查询/合并网关状态"""
        if not self.is_external_gateway or self.payment_reference is None:
            raise InvalidTransitionException(
                self.status.value,
                "check_payment_status",
                f"Order {self.id} has no eSewa payment to check "
                f"(payment method: {self.payment_method.value})",
            )

    def apply_gateway_status(
        self,
        gateway_status: str,
        reference_id: Optional[str] = None,
        now: Optional[datetime] = None,
        *,
        adopt_gateway: bool = False,
    ) -> bool:
        """
        将网关状态合并到 payment_reference（非破坏性合并）

        Args:
            adopt_gateway: 仅验签通过的回调可置为 True，此时订单支付方式切换为 eSewa；
                其余调用方（状态查询）要求订单已是 eSewa 且已有 payment_reference

        Returns:
            订单状态是否因支付完成而推进到 processing
        """
        if not adopt_gateway:
            self.ensure_gateway_tracked()
        now = now or _utcnow()
        gateway_status = (gateway_status or "").upper()
        mapping = GATEWAY_STATUS_TO_REFERENCE.get("esewa", {})
        ref_status = mapping.get(gateway_status, gateway_status.lower())

        previous = self.payment_reference
        if adopt_gateway:
            self.payment_method = EXTERNAL_GATEWAY
        self.payment_reference = PaymentReference(
            method=EXTERNAL_GATEWAY.value,
            transaction_id=self.id,
            status=ref_status,
            reference_id=reference_id or (previous.reference_id if previous else None),
            completed_at=previous.completed_at if previous else None,
            updated_at=now,
        )
        self.updated_at = now

        if gateway_status != GATEWAY_COMPLETE:
            return False
        if self.payment_reference.completed_at is None:
            self.payment_reference.completed_at = now
        if self.status == OrderStatus.PENDING:
            self._transition(OrderEvent.CONFIRM_PAYMENT, now)
            return True
        return False
