"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict

from application.dtos.orders import OrderResponseDTO


class PaymentInitiation(BaseModel):
    """发起支付时返回给前端、用于表单跳转的已签名字段"""
    amount: str
    tax_amount: str
    total_amount: str
    transaction_uuid: str
    product_code: str
    product_service_charge: str
    product_delivery_charge: str
    success_url: str
    failure_url: str
    signed_field_names: str
    signature: str
    payment_url: str


class GatewayStatusQuery(BaseModel):
    product_code: str
    transaction_uuid: str
    total_amount: str


class GatewayStatus(BaseModel):
    """状态查询接口的返回体；保留网关附带的其它字段"""
    status: str
    ref_id: Optional[str] = None
    product_code: Optional[str] = None
    transaction_uuid: Optional[str] = None
    total_amount: Optional[Any] = None

    model_config = ConfigDict(extra="allow")


class CallbackResult(BaseModel):
    success: bool
    message: str
    order: OrderResponseDTO


class StatusPollResult(BaseModel):
    payment_status: GatewayStatus
    order: OrderResponseDTO
