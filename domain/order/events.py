"""
Order domain events.

Dataclass events record order lifecycle facts for downstream handling
(logging today; messaging later). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class OrderEventRecord:
    order_id: str
    status: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class OrderCreated(OrderEventRecord):
    total_price: str = ""


@dataclass
class OrderStatusChanged(OrderEventRecord):
    previous_status: str = ""


@dataclass
class OrderCancelled(OrderEventRecord):
    refund_pending: bool = False


@dataclass
class RefundRequested(OrderEventRecord):
    reason: Optional[str] = None


@dataclass
class RefundApproved(OrderEventRecord):
    pass

