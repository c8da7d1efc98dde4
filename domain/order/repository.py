"""
订单仓储接口 - 定义订单数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Order


class OrderRepository(ABC):
    """订单仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """创建订单（version 置为 1）"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """根据ID获取订单"""
        pass

    @abstractmethod
    async def list_by_email(self, email: str) -> List[Order]:
        """获取客户的订单列表（按创建时间倒序）"""
        pass

    @abstractmethod
    async def list_all(self, skip: int = 0, limit: int = 100) -> List[Order]:
        """获取全部订单（按创建时间倒序）"""
        pass

    @abstractmethod
    async def save(self, order: Order) -> Order:
        """
        比较并交换写入：仅当库中 version 等于 order.version 时更新，并将 version 加一

        Raises:
            ConcurrentModificationException: 版本不匹配（并发修改）
        """
        pass

    @abstractmethod
    async def delete_all(self) -> int:
        """删除全部订单，返回删除条数"""
        pass
