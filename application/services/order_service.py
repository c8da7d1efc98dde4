"""
订单应用服务（application/services）- 编排领域服务、鉴权与图书目录快照
"""
from dataclasses import asdict
from decimal import Decimal
from typing import Callable, List

from application.dtos.orders import (
    CancelResultDTO,
    OrderCreateDTO,
    OrderResponseDTO,
    Principal,
    ResetResultDTO,
)
from application.ports.catalog import BookCatalog
from core.logging_config import get_logger
from domain.common.exceptions import PermissionDeniedException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Address, LineItem, Order, PaymentMethod
from domain.order.service import OrderDomainService
from domain.order.state_machine import OrderStatus


logger = get_logger(__name__)

CANCEL_MESSAGE_GATEWAY = (
    "Your order has been successfully cancelled! Your refund will be processed through eSewa."
)
CANCEL_MESSAGE_COD = (
    "Your order has been successfully cancelled! Since you chose Cash on Delivery, no refund is necessary."
)
CANCEL_MESSAGE_DEFAULT = "Your order has been successfully cancelled!"


def cancel_message(order: Order) -> str:
    if order.is_external_gateway:
        return CANCEL_MESSAGE_GATEWAY
    if order.payment_method == PaymentMethod.CASH_ON_DELIVERY:
        return CANCEL_MESSAGE_COD
    return CANCEL_MESSAGE_DEFAULT


def ensure_can_access(principal: Principal, order: Order) -> None:
    """订单所有者（按邮箱）或管理员才可访问"""
    if principal.is_admin:
        return
    if principal.email and principal.email.lower() == (order.email or "").lower():
        return
    raise PermissionDeniedException("You do not have permission to access this order")


def log_domain_events(domain_service: OrderDomainService, **context) -> None:
    """把领域服务收集的事件逐条写入日志"""
    for event in domain_service.get_domain_events():
        fields = asdict(event)
        fields.pop("occurred_at", None)
        logger.info("order_domain_event", event_type=type(event).__name__, **fields, **context)


def ensure_admin(principal: Principal) -> None:
    if not principal.is_admin:
        raise PermissionDeniedException("Admin privileges required")


class OrderApplicationService:
    """订单应用服务 - 每个用例一个事务"""

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], catalog: BookCatalog):
        self._uow_factory = uow_factory
        self._catalog = catalog

    async def _snapshot_items(self, data: OrderCreateDTO) -> List[LineItem]:
        items: List[LineItem] = []
        for line in data.products:
            book = await self._catalog.get_book(line.book_id)
            items.append(LineItem(
                book_id=book.id,
                title=book.title,
                price=book.price,
                quantity=line.quantity,
            ))
        return items

    async def create_order(self, data: OrderCreateDTO) -> OrderResponseDTO:
        """创建订单：价格从目录快照，提交的总价须与明细合计一致"""
        items = await self._snapshot_items(data)
        async with self._uow_factory() as uow:
            domain_service = OrderDomainService(uow.order_repository)
            order = await domain_service.create_order(
                email=str(data.email),
                name=data.name,
                phone=data.phone,
                address=Address(**data.address.model_dump()),
                products=items,
                total_price=Decimal(data.total_price),
                payment_method=data.payment_method,
                shipping_method=data.shipping_method,
                special_instructions=data.special_instructions,
            )
            log_domain_events(domain_service, version=order.version)
            return OrderResponseDTO.from_entity(order)

    async def get_order(self, order_id: str, principal: Principal) -> OrderResponseDTO:
        async with self._uow_factory(readonly=True) as uow:
            order = await OrderDomainService(uow.order_repository).load(order_id)
            ensure_can_access(principal, order)
            return OrderResponseDTO.from_entity(order)

    async def list_orders_by_email(self, email: str, principal: Principal) -> List[OrderResponseDTO]:
        if not principal.is_admin and (principal.email or "").lower() != email.lower():
            raise PermissionDeniedException("You can only view your own orders")
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.list_by_email(email)
            return [OrderResponseDTO.from_entity(o) for o in orders]

    async def list_orders(self, principal: Principal, skip: int = 0, limit: int = 100) -> List[OrderResponseDTO]:
        ensure_admin(principal)
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.list_all(skip=skip, limit=limit)
            return [OrderResponseDTO.from_entity(o) for o in orders]

    async def cancel_order(self, order_id: str, principal: Principal) -> CancelResultDTO:
        async with self._uow_factory() as uow:
            domain_service = OrderDomainService(uow.order_repository)
            order = await domain_service.load(order_id)
            ensure_can_access(principal, order)
            saved = await domain_service.cancel_order(order_id, order=order)
            log_domain_events(domain_service, payment_method=saved.payment_method.value, version=saved.version)
            return CancelResultDTO(message=cancel_message(saved), order=OrderResponseDTO.from_entity(saved))

    async def request_refund(self, order_id: str, reason: str, principal: Principal) -> OrderResponseDTO:
        async with self._uow_factory() as uow:
            domain_service = OrderDomainService(uow.order_repository)
            order = await domain_service.load(order_id)
            ensure_can_access(principal, order)
            saved = await domain_service.request_refund(order_id, reason, order=order)
            log_domain_events(domain_service, version=saved.version)
            return OrderResponseDTO.from_entity(saved)

    async def approve_refund(self, order_id: str, principal: Principal) -> OrderResponseDTO:
        ensure_admin(principal)
        async with self._uow_factory() as uow:
            domain_service = OrderDomainService(uow.order_repository)
            saved = await domain_service.approve_refund(order_id)
            log_domain_events(domain_service, version=saved.version)
            return OrderResponseDTO.from_entity(saved)

    async def update_status(self, order_id: str, new_status: OrderStatus, principal: Principal) -> OrderResponseDTO:
        ensure_admin(principal)
        async with self._uow_factory() as uow:
            domain_service = OrderDomainService(uow.order_repository)
            saved = await domain_service.update_status(order_id, new_status)
            log_domain_events(domain_service, version=saved.version)
            return OrderResponseDTO.from_entity(saved)

    async def reset_all_orders(self, principal: Principal) -> ResetResultDTO:
        """清空订单表（仅管理员；用于测试环境）"""
        ensure_admin(principal)
        async with self._uow_factory() as uow:
            deleted = await uow.order_repository.delete_all()
        logger.warning("orders_reset", deleted_count=deleted, by=principal.user_id)
        return ResetResultDTO(deleted_count=deleted, message=f"Deleted {deleted} orders")
