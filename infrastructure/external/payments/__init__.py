"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import PaymentSettings, payment_settings
from application.ports.payment_gateway import GatewayStatusClient


def get_status_client(provider: str = "esewa", cfg: Optional[PaymentSettings] = None) -> GatewayStatusClient:
    cfg = cfg or payment_settings
    name = provider.lower()
    if name == "esewa":
        from .esewa_client import EsewaStatusClient
        return EsewaStatusClient(
            cfg.esewa.status_url,
            timeouts=cfg.timeouts.model_dump(),
            retry={"max": cfg.retry.max, "base": cfg.retry.base_backoff},
        )
    raise ValueError(f"Unsupported payment provider: {name}")
