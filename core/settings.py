"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings; the composition root turns these
into an immutable GatewayConfig that is passed to the payment components.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field

from domain.payment.config import GatewayConfig, LIVE_CALLBACK_SIGNED_FIELDS, REQUEST_SIGNED_FIELDS


class PaymentTimeouts(BaseModel):
    connect: float = 3.0
    read: float = 10.0
    write: float = 10.0
    total: float = 10.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class EsewaSettings(BaseModel):
    # eSewa 公开测试商户（EPAYTEST）；生产环境必须通过环境变量覆盖
    merchant_code: str = "EPAYTEST"
    secret_key: str = "8gBm/:&EnhH.1/q"
    production: bool = False
    tax_rate: Decimal = Decimal("0.13")
    prod_form_url: str = "https://epay.esewa.com.np/api/epay/main/v2/form"
    prod_status_url: str = "https://epay.esewa.com.np/api/epay/transaction/status/"
    test_form_url: str = "https://rc-epay.esewa.com.np/api/epay/main/v2/form"
    test_status_url: str = "https://rc.esewa.com.np/api/epay/transaction/status/"
    # 回调中必须声明的签名字段及顺序；未配置时按环境取默认值。
    # 测试环境默认与发起支付的三个字段相同，不含 status：发起接口返回给客户端的签名
    # 同样能通过 status=COMPLETE 的自造回调验签，只可用于沙箱联调。
    callback_signed_fields: Optional[list[str]] = None

    @property
    def form_url(self) -> str:
        return self.prod_form_url if self.production else self.test_form_url

    @property
    def status_url(self) -> str:
        return self.prod_status_url if self.production else self.test_status_url

    @property
    def effective_callback_signed_fields(self) -> tuple[str, ...]:
        if self.callback_signed_fields:
            return tuple(self.callback_signed_fields)
        return LIVE_CALLBACK_SIGNED_FIELDS if self.production else REQUEST_SIGNED_FIELDS


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    esewa: EsewaSettings = Field(default_factory=EsewaSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


def build_gateway_config(cfg: EsewaSettings | None = None) -> GatewayConfig:
    cfg = cfg or payment_settings.esewa
    return GatewayConfig(
        merchant_code=cfg.merchant_code,
        secret_key=cfg.secret_key,
        form_url=cfg.form_url,
        status_url=cfg.status_url,
        tax_rate=Decimal(cfg.tax_rate),
        callback_signed_fields=cfg.effective_callback_signed_fields,
    )


payment_settings = PaymentSettings()
