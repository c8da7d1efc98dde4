"""
订单领域服务 - 编排订单生命周期操作
"""
from decimal import Decimal
from typing import List, Optional

from .entity import Address, LineItem, Order, PaymentMethod, ShippingMethod
from .events import (
    OrderCancelled,
    OrderCreated,
    OrderStatusChanged,
    RefundApproved,
    RefundRequested,
)
from .repository import OrderRepository
from .state_machine import OrderStatus
from domain.common.exceptions import OrderNotFoundException


class OrderDomainService:
    """
    订单领域服务

    职责：
    1. 创建订单（总价与明细一致性由聚合校验）
    2. 加载 -> 状态机转换 -> 比较并交换写入
    3. 产生领域事件
    """

    def __init__(self, order_repository: OrderRepository):
        self.order_repository = order_repository
        self.events: List = []  # 领域事件收集

    async def load(self, order_id: str) -> Order:
        order = await self.order_repository.get_by_id(order_id)
        if not order:
            raise OrderNotFoundException(order_id)
        return order

    async def create_order(
        self,
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
    ) -> Order:
        order = Order.create(
            email=email,
            name=name,
            phone=phone,
            address=address,
            products=products,
            total_price=total_price,
            payment_method=payment_method,
            shipping_method=shipping_method,
            special_instructions=special_instructions,
        )
        created = await self.order_repository.create(order)
        self.events.append(OrderCreated(
            order_id=created.id,
            status=created.status.value,
            total_price=str(created.total_price),
        ))
        return created

    async def cancel_order(self, order_id: str, order: Optional[Order] = None) -> Order:
        order = order or await self.load(order_id)
        order.cancel()
        saved = await self.order_repository.save(order)
        self.events.append(OrderCancelled(
            order_id=saved.id,
            status=saved.status.value,
            refund_pending=saved.is_external_gateway,
        ))
        return saved

    async def request_refund(self, order_id: str, reason: Optional[str], order: Optional[Order] = None) -> Order:
        order = order or await self.load(order_id)
        order.request_refund(reason)
        saved = await self.order_repository.save(order)
        self.events.append(RefundRequested(
            order_id=saved.id,
            status=saved.status.value,
            reason=saved.refund_reason,
        ))
        return saved

    async def approve_refund(self, order_id: str) -> Order:
        order = await self.load(order_id)
        order.approve_refund()
        saved = await self.order_repository.save(order)
        self.events.append(RefundApproved(order_id=saved.id, status=saved.status.value))
        return saved

    async def update_status(self, order_id: str, new_status: OrderStatus) -> Order:
        order = await self.load(order_id)
        previous = order.status
        order.update_status(new_status)
        saved = await self.order_repository.save(order)
        self.events.append(OrderStatusChanged(
            order_id=saved.id,
            status=saved.status.value,
            previous_status=previous.value,
        ))
        return saved

    def get_domain_events(self) -> List:
        events = list(self.events)
        self.events.clear()
        return events
