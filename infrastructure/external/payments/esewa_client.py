"""
eSewa transaction status adapter (ePay v2 status API).

GET <status_url>?product_code=&total_amount=&transaction_uuid= returns JSON
like ``{"product_code": "EPAYTEST", "transaction_uuid": "...",
"total_amount": 100.0, "status": "COMPLETE", "ref_id": "0001TS9"}``.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from application.dtos.payments import GatewayStatus, GatewayStatusQuery
from application.ports.payment_gateway import GatewayStatusClient
from domain.common.exceptions import GatewayUnavailableException
from infrastructure.external.payments.base import BaseGatewayClient
from infrastructure.external.payments.exceptions import PaymentProviderError


class EsewaStatusClient(BaseGatewayClient, GatewayStatusClient):
    provider = "esewa"

    def __init__(
        self,
        status_url: str,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(timeouts=timeouts, retry=retry, transport=transport)
        self.status_url = status_url

    async def check_status(self, query: GatewayStatusQuery) -> GatewayStatus:  # type: ignore[override]
        params = query.model_dump()

        async def _do() -> httpx.Response:
            async with self.client() as c:
                return await c.get(self.status_url, params=params)

        try:
            resp = await self._retry(_do)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            self._log("esewa_status_unavailable", transaction_uuid=query.transaction_uuid, error=type(e).__name__)
            raise GatewayUnavailableException(
                "Payment gateway is unavailable, please retry later",
                provider=self.provider,
                details={"error": type(e).__name__},
            ) from e

        if resp.status_code >= 400:
            self._log("esewa_status_http_error", transaction_uuid=query.transaction_uuid, status_code=resp.status_code)
            raise GatewayUnavailableException(
                f"Payment gateway returned HTTP {resp.status_code}",
                provider=self.provider,
                details={"status_code": resp.status_code},
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise PaymentProviderError(
                "Payment gateway returned a non-JSON body",
                provider=self.provider,
            ) from e
        if not isinstance(body, dict) or not body.get("status"):
            raise PaymentProviderError(
                "Payment gateway response has no status",
                provider=self.provider,
                details={"body": body if isinstance(body, dict) else None},
            )
        try:
            status = GatewayStatus.model_validate(body)
        except ValidationError as e:
            raise PaymentProviderError(
                "Payment gateway response is malformed",
                provider=self.provider,
            ) from e
        self._log(
            "esewa_status_checked",
            transaction_uuid=query.transaction_uuid,
            gateway_status=status.status,
        )
        return status
