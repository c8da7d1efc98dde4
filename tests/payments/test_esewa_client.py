import httpx
import pytest

from application.dtos.payments import GatewayStatusQuery
from domain.common.exceptions import GatewayUnavailableException
from infrastructure.external.payments import get_status_client
from infrastructure.external.payments.esewa_client import EsewaStatusClient
from infrastructure.external.payments.exceptions import PaymentProviderError


STATUS_URL = "https://rc.esewa.com.np/api/epay/transaction/status/"
QUERY = GatewayStatusQuery(
    product_code="EPAYTEST",
    transaction_uuid="0b8c1f1e-3f1a-4c65-9d6f-1b2e6a1c9f00",
    total_amount="1000.00",
)


def make_client(handler, retries=0):
    return EsewaStatusClient(
        STATUS_URL,
        retry={"max": retries, "base": 0.0},
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_status_query_parameters_and_parsing():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(dict(request.url.params))
        return httpx.Response(200, json={
            "product_code": "EPAYTEST",
            "transaction_uuid": QUERY.transaction_uuid,
            "total_amount": 1000.0,
            "status": "COMPLETE",
            "ref_id": "000AE01",
        })

    client = make_client(handler)
    status = await client.check_status(QUERY)
    await client.aclose()

    assert seen == {
        "product_code": "EPAYTEST",
        "transaction_uuid": QUERY.transaction_uuid,
        "total_amount": "1000.00",
    }
    assert status.status == "COMPLETE"
    assert status.ref_id == "000AE01"


@pytest.mark.asyncio
async def test_transport_errors_are_retried_then_reported_unavailable():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectTimeout("timed out", request=request)

    client = make_client(handler, retries=2)
    with pytest.raises(GatewayUnavailableException):
        await client.check_status(QUERY)
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_transient_failure_recovers():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ConnectError("reset", request=request)
        return httpx.Response(200, json={"status": "PENDING", "ref_id": None})

    status = await make_client(handler, retries=1).check_status(QUERY)
    assert status.status == "PENDING"


@pytest.mark.asyncio
async def test_server_error_is_unavailable():
    client = make_client(lambda request: httpx.Response(503, text="maintenance"))
    with pytest.raises(GatewayUnavailableException):
        await client.check_status(QUERY)


@pytest.mark.asyncio
async def test_body_without_status_is_provider_error():
    client = make_client(lambda request: httpx.Response(200, json={"code": 0}))
    with pytest.raises(PaymentProviderError):
        await client.check_status(QUERY)


def test_factory_builds_esewa_client():
    client = get_status_client("esewa")
    assert isinstance(client, EsewaStatusClient)
    assert client.status_url.endswith("/transaction/status/")
    with pytest.raises(ValueError):
        get_status_client("stripe")
