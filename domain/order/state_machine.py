"""
订单状态机 - 以转换表作为唯一入口

所有状态变化（管理员更新、取消、退款、网关回调确认）都通过 ``next_status`` 查表，
表中不存在的 (当前状态, 事件) 组合一律拒绝。
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple

from domain.common.exceptions import InvalidTransitionException


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "pending"                      # 待处理（创建后）
    PROCESSING = "processing"                # 处理中（已付款或管理员确认）
    SHIPPED = "shipped"                      # 已发货
    DELIVERED = "delivered"                  # 已送达
    CANCELLED = "cancelled"                  # 已取消
    REFUND_PROCESSING = "refund_processing"  # 退款审核中
    REFUNDED = "refunded"                    # 已退款


class OrderEvent(str, Enum):
    CONFIRM_PAYMENT = "confirm_payment"
    PROCESS = "process"
    SHIP = "ship"
    DELIVER = "deliver"
    CANCEL = "cancel"
    REQUEST_REFUND = "request_refund"
    APPROVE_REFUND = "approve_refund"


# 已发货/已送达的订单不可取消
NON_CANCELLABLE = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED})


def _build_table() -> Dict[Tuple[OrderStatus, OrderEvent], OrderStatus]:
    table = {
        (OrderStatus.PENDING, OrderEvent.CONFIRM_PAYMENT): OrderStatus.PROCESSING,
        (OrderStatus.PENDING, OrderEvent.PROCESS): OrderStatus.PROCESSING,
        (OrderStatus.PROCESSING, OrderEvent.SHIP): OrderStatus.SHIPPED,
        (OrderStatus.SHIPPED, OrderEvent.DELIVER): OrderStatus.DELIVERED,
        (OrderStatus.CANCELLED, OrderEvent.REQUEST_REFUND): OrderStatus.REFUND_PROCESSING,
        (OrderStatus.REFUND_PROCESSING, OrderEvent.APPROVE_REFUND): OrderStatus.REFUNDED,
    }
    for status in OrderStatus:
        if status not in NON_CANCELLABLE:
            table[(status, OrderEvent.CANCEL)] = OrderStatus.CANCELLED
    return table


TRANSITIONS: Dict[Tuple[OrderStatus, OrderEvent], OrderStatus] = _build_table()

# 管理员状态更新只允许正向流程
ADMIN_TARGET_EVENTS: Dict[OrderStatus, OrderEvent] = {
    OrderStatus.PROCESSING: OrderEvent.PROCESS,
    OrderStatus.SHIPPED: OrderEvent.SHIP,
    OrderStatus.DELIVERED: OrderEvent.DELIVER,
}


def can_transition(current: OrderStatus, event: OrderEvent) -> bool:
    return (OrderStatus(current), OrderEvent(event)) in TRANSITIONS


def next_status(current: OrderStatus, event: OrderEvent, message: str | None = None) -> OrderStatus:
    """查表得到目标状态；不合法时抛出 InvalidTransitionException"""
    current = OrderStatus(current)
    event = OrderEvent(event)
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionException(current.value, event.value, message) from None


def event_for_admin_target(current: OrderStatus, target: OrderStatus) -> OrderEvent:
    """将管理员请求的目标状态映射为事件；取消/退款类目标必须走专用操作"""
    target = OrderStatus(target)
    event = ADMIN_TARGET_EVENTS.get(target)
    if event is None:
        raise InvalidTransitionException(
            OrderStatus(current).value,
            f"set_status:{target.value}",
            f"Status {target.value} cannot be set directly; use the dedicated operation",
        )
    return event
