"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete

from domain.common.exceptions import ConcurrentModificationException
from domain.order.entity import Address, LineItem, Order, PaymentReference
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            email=model.email,
            name=model.name,
            phone=model.phone,
            address=Address.from_dict(model.address or {}),
            products=[LineItem.from_dict(item) for item in (model.products or [])],
            total_price=Decimal(str(model.total_price)),
            status=model.status,
            payment_method=model.payment_method,
            payment_reference=(
                PaymentReference.from_dict(model.payment_reference) if model.payment_reference else None
            ),
            shipping_method=model.shipping_method,
            special_instructions=model.special_instructions or "",
            cancelled_at=model.cancelled_at,
            refunded_at=model.refunded_at,
            refund_reason=model.refund_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
            version=model.version,
        )

    def _to_values(self, entity: Order) -> dict:
        """可变列（不含主键与 version）"""
        return {
            "email": entity.email,
            "name": entity.name,
            "phone": entity.phone,
            "address": entity.address.to_dict(),
            "products": [item.to_dict() for item in entity.products],
            "total_price": entity.total_price,
            "status": entity.status.value,
            "payment_method": entity.payment_method.value,
            "payment_reference": entity.payment_reference.to_dict() if entity.payment_reference else None,
            "shipping_method": entity.shipping_method.value,
            "special_instructions": entity.special_instructions,
            "cancelled_at": entity.cancelled_at,
            "refunded_at": entity.refunded_at,
            "refund_reason": entity.refund_reason,
            "created_at": entity.created_at,
            "updated_at": entity.updated_at,
        }

    async def create(self, order: Order) -> Order:
        """创建订单"""
        db_order = OrderModel(id=order.id, version=1, **self._to_values(order))
        self.session.add(db_order)
        await self.session.flush()
        await self.session.refresh(db_order)
        logger.info("order_created", order_id=db_order.id, total_price=str(db_order.total_price))
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """根据ID获取订单"""
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def list_by_email(self, email: str) -> List[Order]:
        """获取客户的订单列表"""
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.email == email)
            .order_by(OrderModel.created_at.desc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_all(self, skip: int = 0, limit: int = 100) -> List[Order]:
        """获取全部订单"""
        result = await self.session.execute(
            select(OrderModel)
            .order_by(OrderModel.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def save(self, order: Order) -> Order:
        """比较并交换写入"""
        expected = order.version
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order.id, OrderModel.version == expected)
            .values(version=expected + 1, **self._to_values(order))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("order_version_conflict", order_id=order.id, expected_version=expected)
            raise ConcurrentModificationException(order.id, expected)
        order.version = expected + 1
        return order

    async def delete_all(self) -> int:
        """删除全部订单"""
        result = await self.session.execute(delete(OrderModel))
        return int(result.rowcount or 0)
