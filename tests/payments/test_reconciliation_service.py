import base64
import json

import pytest

from application.dtos.payments import GatewayStatus
from application.services.payment_service import ReconciliationService
from domain.common.exceptions import (
    GatewayUnavailableException,
    InvalidSignatureException,
    InvalidTransitionException,
    MalformedIdException,
    MissingFieldsException,
    OrderNotFoundException,
)
from domain.order.entity import PaymentMethod
from domain.order.state_machine import OrderStatus
from domain.payment.config import GatewayConfig
from domain.payment.signature import sign
from tests.fakes import FakeStatusClient, InMemoryUowFactory, make_order


CONFIG = GatewayConfig(
    merchant_code="EPAYTEST",
    secret_key="8gBm/:&EnhH.1/q",
    form_url="https://rc-epay.esewa.com.np/api/epay/main/v2/form",
    status_url="https://rc.esewa.com.np/api/epay/transaction/status/",
)


def build_service(uow, status_client=None):
    return ReconciliationService(
        uow_factory=uow,
        config=CONFIG,
        status_client=status_client or FakeStatusClient(),
        frontend_url="http://localhost:5173/",
    )


def callback_for(order, status="COMPLETE", **overrides):
    payload = {
        "transaction_uuid": order.id,
        "total_amount": "1000.00",
        "product_code": "EPAYTEST",
        "status": status,
        "ref_id": "000AE01",
        "signed_field_names": "total_amount,transaction_uuid,product_code",
    }
    payload.update(overrides)
    payload["signature"] = sign(
        [(n, payload[n]) for n in payload["signed_field_names"].split(",")],
        CONFIG.secret_key,
    )
    return payload


@pytest.mark.asyncio
async def test_initiate_persists_reference_and_returns_signed_form():
    uow = InMemoryUowFactory()
    order = uow.put(make_order(payment_method=PaymentMethod.CASH_ON_DELIVERY))

    result = await build_service(uow).initiate(order.id)

    assert result.transaction_uuid == order.id
    assert result.total_amount == "1000.00"
    assert result.success_url == "http://localhost:5173/payment/esewa/success"
    assert result.failure_url == "http://localhost:5173/payment/esewa/failure"
    stored = uow.get(order.id)
    assert stored.payment_method == PaymentMethod.ESEWA
    assert stored.payment_reference.status == "initiated"
    assert stored.payment_reference.transaction_id == order.id
    assert stored.version == 2


@pytest.mark.asyncio
async def test_initiate_rejects_non_pending_orders():
    uow = InMemoryUowFactory()
    order = uow.put(make_order(status=OrderStatus.SHIPPED))
    with pytest.raises(InvalidTransitionException):
        await build_service(uow).initiate(order.id)
    assert uow.get(order.id).version == 1


@pytest.mark.asyncio
async def test_initiate_unknown_order():
    with pytest.raises(OrderNotFoundException):
        await build_service(InMemoryUowFactory()).initiate("0b8c1f1e-3f1a-4c65-9d6f-1b2e6a1c9f00")


@pytest.mark.asyncio
async def test_valid_complete_callback_moves_order_to_processing():
    uow = InMemoryUowFactory()
    order = uow.put(make_order())

    result = await build_service(uow).handle_callback(callback_for(order))

    assert result.success is True
    stored = uow.get(order.id)
    assert stored.status == OrderStatus.PROCESSING
    assert stored.payment_reference.status == "completed"
    assert stored.payment_reference.reference_id == "000AE01"
    assert stored.payment_reference.completed_at is not None


@pytest.mark.asyncio
async def test_base64_envelope_callback_is_accepted():
    uow = InMemoryUowFactory()
    order = uow.put(make_order())
    encoded = base64.b64encode(json.dumps(callback_for(order)).encode()).decode()

    await build_service(uow).handle_callback({"data": encoded})

    assert uow.get(order.id).status == OrderStatus.PROCESSING


@pytest.mark.asyncio
async def test_tampered_amount_is_rejected_without_mutation():
    uow = InMemoryUowFactory()
    order = uow.put(make_order())
    payload = callback_for(order)
    payload["total_amount"] = "1.00"

    with pytest.raises(InvalidSignatureException):
        await build_service(uow).handle_callback(payload)

    stored = uow.get(order.id)
    assert stored.status == OrderStatus.PENDING
    assert stored.payment_reference is None
    assert stored.version == 1


@pytest.mark.asyncio
async def test_signed_but_wrong_amount_is_rejected():
    uow = InMemoryUowFactory()
    order = uow.put(make_order())
    with pytest.raises(InvalidSignatureException):
        await build_service(uow).handle_callback(callback_for(order, total_amount="10.00"))
    assert uow.get(order.id).status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_signed_but_foreign_merchant_is_rejected():
    uow = InMemoryUowFactory()
    order = uow.put(make_order())
    with pytest.raises(InvalidSignatureException):
        await build_service(uow).handle_callback(callback_for(order, product_code="OTHER"))


@pytest.mark.asyncio
async def test_declared_field_order_not_matching_protocol_is_rejected():
    uow = InMemoryUowFactory()
    order = uow.put(make_order())
    payload = callback_for(order, signed_field_names="transaction_uuid,product_code,total_amount")
    with pytest.raises(InvalidSignatureException):
        await build_service(uow).handle_callback(payload)


@pytest.mark.asyncio
async def test_missing_status_field():
    uow = InMemoryUowFactory()
    order = uow.put(make_order())
    payload = callback_for(order)
    payload.pop("status")
    with pytest.raises(MissingFieldsException):
        await build_service(uow).handle_callback(payload)


@pytest.mark.asyncio
async def test_malformed_transaction_uuid():
    uow = InMemoryUowFactory()
    order = uow.put(make_order())
    payload = callback_for(order, transaction_uuid="'; DROP TABLE orders; --")
    with pytest.raises(MalformedIdException):
        await build_service(uow).handle_callback(payload)


@pytest.mark.asyncio
async def test_callback_for_unknown_order():
    uow = InMemoryUowFactory()
    order = make_order()
    with pytest.raises(OrderNotFoundException):
        await build_service(uow).handle_callback(callback_for(order))


@pytest.mark.asyncio
async def test_complete_on_cancelled_order_keeps_order_cancelled():
    uow = InMemoryUowFactory()
    order = uow.put(make_order(status=OrderStatus.CANCELLED))
    await build_service(uow).handle_callback(callback_for(order))
    stored = uow.get(order.id)
    assert stored.status == OrderStatus.CANCELLED
    assert stored.payment_reference.status == "completed"


@pytest.mark.asyncio
async def test_poll_status_is_idempotent_apart_from_updated_at():
    uow = InMemoryUowFactory()
    order = uow.put(make_order(initiated=True))
    client = FakeStatusClient(status=GatewayStatus(status="COMPLETE", ref_id="000AE01"))
    service = build_service(uow, client)

    first = await service.poll_status(order.id)
    ref_a = uow.get(order.id).payment_reference
    await service.poll_status(order.id)
    ref_b = uow.get(order.id).payment_reference

    assert first.order.status == OrderStatus.PROCESSING
    assert client.calls[0].transaction_uuid == order.id
    assert client.calls[0].total_amount == "1000.00"
    assert client.calls[0].product_code == "EPAYTEST"
    for attr in ("method", "transaction_id", "status", "reference_id", "completed_at"):
        assert getattr(ref_a, attr) == getattr(ref_b, attr)
    assert ref_b.updated_at >= ref_a.updated_at


@pytest.mark.asyncio
async def test_poll_pending_keeps_order_pending():
    uow = InMemoryUowFactory()
    order = uow.put(make_order(initiated=True))
    client = FakeStatusClient(status=GatewayStatus(status="PENDING"))
    result = await build_service(uow, client).poll_status(order.id)
    assert result.order.status == OrderStatus.PENDING
    assert uow.get(order.id).payment_reference.status == "pending"


@pytest.mark.asyncio
async def test_gateway_unavailable_does_not_mutate():
    uow = InMemoryUowFactory()
    order = uow.put(make_order(initiated=True))
    client = FakeStatusClient(error=GatewayUnavailableException("timeout", provider="esewa"))

    with pytest.raises(GatewayUnavailableException):
        await build_service(uow, client).poll_status(order.id)

    stored = uow.get(order.id)
    assert stored.version == 1
    assert stored.payment_reference.status == "initiated"


@pytest.mark.asyncio
async def test_poll_rejects_cash_on_delivery_order():
    uow = InMemoryUowFactory()
    order = uow.put(make_order(status=OrderStatus.PROCESSING, payment_method=PaymentMethod.CASH_ON_DELIVERY))
    client = FakeStatusClient(status=GatewayStatus(status="NOT_FOUND"))

    with pytest.raises(InvalidTransitionException):
        await build_service(uow, client).poll_status(order.id)

    assert client.calls == []
    stored = uow.get(order.id)
    assert stored.payment_method == PaymentMethod.CASH_ON_DELIVERY
    assert stored.payment_reference is None
    assert stored.version == 1

    # 仍是货到付款订单：取消后不可申请退款
    stored.cancel()
    with pytest.raises(InvalidTransitionException):
        stored.request_refund("want my money")
    assert stored.status == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_poll_rejects_esewa_order_never_initiated():
    uow = InMemoryUowFactory()
    order = uow.put(make_order())
    client = FakeStatusClient(status=GatewayStatus(status="COMPLETE", ref_id="000AE01"))

    with pytest.raises(InvalidTransitionException):
        await build_service(uow, client).poll_status(order.id)

    assert client.calls == []
    assert uow.get(order.id).status == OrderStatus.PENDING
