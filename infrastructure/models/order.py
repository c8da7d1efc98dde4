"""
订单数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, JSON, Index
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    订单数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.order.entity.Order 中
    """
    __tablename__ = "orders"

    # 主键即网关 transaction_uuid
    id = Column(String(36), primary_key=True, comment="订单ID (UUID)")

    # 客户信息
    email = Column(String(255), nullable=False, index=True, comment="下单邮箱")
    name = Column(String(200), nullable=False, comment="收货人")
    phone = Column(String(32), nullable=False, comment="联系电话")
    address = Column(JSON, nullable=False, comment="收货地址")

    # 商品快照与金额
    products = Column(JSON, nullable=False, comment="商品快照列表")
    total_price = Column(Numeric(precision=15, scale=2), nullable=False, comment="订单总价（含税）")

    # 状态
    status = Column(
        String(32),
        nullable=False,
        default="pending",
        index=True,
        comment="订单状态: pending/processing/shipped/delivered/cancelled/refund_processing/refunded"
    )

    # 支付信息
    payment_method = Column(String(32), nullable=False, comment="支付方式")
    payment_reference = Column(JSON, nullable=True, comment="网关支付引用")

    shipping_method = Column(String(32), nullable=False, default="Standard", comment="配送方式")
    special_instructions = Column(Text, nullable=False, default="", comment="备注")

    # 取消与退款
    cancelled_at = Column(DateTime(timezone=True), nullable=True, comment="取消时间")
    refunded_at = Column(DateTime(timezone=True), nullable=True, comment="退款时间")
    refund_reason = Column(Text, nullable=True, comment="退款原因")

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    # 乐观并发版本号
    version = Column(Integer, nullable=False, default=1, comment="版本号")

    __table_args__ = (
        Index("ix_orders_email_created_at", "email", "created_at"),
    )

    def __repr__(self):
        return (
            f"<OrderModel(id='{self.id}', email='{self.email}', "
            f"status='{self.status}', version={self.version})>"
        )
