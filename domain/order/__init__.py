from .entity import (
    Address,
    LineItem,
    Order,
    PaymentMethod,
    PaymentReference,
    PaymentReferenceStatus,
    ShippingMethod,
    EXTERNAL_GATEWAY,
)
from .state_machine import OrderEvent, OrderStatus

__all__ = [
    "Address",
    "LineItem",
    "Order",
    "OrderEvent",
    "OrderStatus",
    "PaymentMethod",
    "PaymentReference",
    "PaymentReferenceStatus",
    "ShippingMethod",
    "EXTERNAL_GATEWAY",
]
