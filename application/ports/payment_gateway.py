"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import GatewayStatus, GatewayStatusQuery


@runtime_checkable
class GatewayStatusClient(Protocol):
    """Status lookup against a hosted payment gateway.

    Implementations raise GatewayUnavailableException on timeout or transport
    failure so callers never act on a partial answer.
    """

    provider: str

    async def check_status(self, query: GatewayStatusQuery) -> GatewayStatus: ...

    async def aclose(self) -> None: ...
