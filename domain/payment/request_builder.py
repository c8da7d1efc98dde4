"""
支付请求构建器 - 计算税额拆分并生成已签名的 eSewa 表单字段

纯组件：不做持久化。订单的 payment_method / payment_reference 由应用服务写入。
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict

from domain.common.exceptions import InvalidAmountException
from domain.order.entity import Order
from .config import GatewayConfig, REQUEST_SIGNED_FIELDS
from .signature import sign


_CENTS = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    return f"{round2(value):.2f}"


def _validated_total(total_price: Any) -> Decimal:
    if isinstance(total_price, bool):
        raise InvalidAmountException(total_price)
    try:
        total = total_price if isinstance(total_price, Decimal) else Decimal(str(total_price))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountException(total_price) from None
    if not total.is_finite() or total < 0:
        raise InvalidAmountException(total_price)
    return total


class PaymentRequestBuilder:
    """根据订单构造支付发起表单"""

    def __init__(self, config: GatewayConfig):
        self.config = config

    def split_amount(self, total_price: Any) -> Dict[str, Decimal]:
        """总价含税：tax = round2(total * rate)，amount = total - tax"""
        total = _validated_total(total_price)
        tax_amount = round2(total * self.config.tax_rate)
        return {
            "amount": total - tax_amount,
            "tax_amount": tax_amount,
            "total_amount": total,
        }

    def build(self, order: Order, success_url: str, failure_url: str) -> Dict[str, str]:
        split = self.split_amount(order.total_price)
        fields: Dict[str, str] = {
            "amount": format_amount(split["amount"]),
            "tax_amount": format_amount(split["tax_amount"]),
            "total_amount": format_amount(split["total_amount"]),
            "transaction_uuid": str(order.id),
            "product_code": self.config.merchant_code,
            "product_service_charge": "0",
            "product_delivery_charge": "0",
            "success_url": success_url,
            "failure_url": failure_url,
            "signed_field_names": ",".join(REQUEST_SIGNED_FIELDS),
        }
        fields["signature"] = sign(
            [(name, fields[name]) for name in REQUEST_SIGNED_FIELDS],
            self.config.secret_key,
        )
        fields["payment_url"] = self.config.form_url
        return fields
