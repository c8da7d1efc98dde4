"""
网关协议配置 - 不可变值对象

由组合根（API 依赖）从 core.settings 构造一次后显式传入构建器、验签器与状态查询客户端；
领域内的纯函数不读取环境变量。
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple


# 发起支付时签名的字段及顺序（协议固定）
REQUEST_SIGNED_FIELDS: Tuple[str, ...] = ("total_amount", "transaction_uuid", "product_code")

# 生产环境 v2 回调签名字段；包含 status，客户端无法用发起支付时拿到的签名伪造完成回调
LIVE_CALLBACK_SIGNED_FIELDS: Tuple[str, ...] = (
    "transaction_code",
    "status",
    "total_amount",
    "transaction_uuid",
    "product_code",
    "signed_field_names",
)


@dataclass(frozen=True)
class GatewayConfig:
    merchant_code: str
    secret_key: str
    form_url: str
    status_url: str
    tax_rate: Decimal = Decimal("0.13")
    callback_signed_fields: Tuple[str, ...] = REQUEST_SIGNED_FIELDS
    provider: str = "esewa"
