import base64
import json

import pytest

from domain.common.exceptions import DomainValidationException, MissingFieldsException
from domain.payment.config import GatewayConfig
from domain.payment.response_verifier import PaymentResponseVerifier, decode_envelope
from domain.payment.signature import sign


CONFIG = GatewayConfig(
    merchant_code="EPAYTEST",
    secret_key="8gBm/:&EnhH.1/q",
    form_url="https://form",
    status_url="https://status/",
)
FIELD_ORDER = "total_amount,transaction_uuid,product_code"


def signed_payload(order=FIELD_ORDER, **overrides):
    payload = {
        "transaction_uuid": "0b8c1f1e-3f1a-4c65-9d6f-1b2e6a1c9f00",
        "total_amount": "1000.00",
        "product_code": "EPAYTEST",
        "status": "COMPLETE",
        "ref_id": "000AE01",
        "signed_field_names": order,
    }
    payload.update(overrides)
    names = order.split(",")
    payload["signature"] = sign([(n, payload[n]) for n in names], CONFIG.secret_key)
    return payload


def test_valid_payload_verifies():
    assert PaymentResponseVerifier(CONFIG).verify(signed_payload()) is True


def test_tampered_amount_fails():
    payload = signed_payload()
    payload["total_amount"] = "1.00"
    assert PaymentResponseVerifier(CONFIG).verify(payload) is False


def test_attacker_chosen_field_order_is_rejected_even_when_signature_matches():
    payload = signed_payload(order="product_code,total_amount,transaction_uuid")
    assert PaymentResponseVerifier(CONFIG).verify(payload) is False


def test_subset_of_fields_is_rejected():
    payload = signed_payload(order="transaction_uuid")
    assert PaymentResponseVerifier(CONFIG).verify(payload) is False


@pytest.mark.parametrize("field", ["signed_field_names", "signature"])
def test_missing_envelope_fields(field):
    payload = signed_payload()
    payload.pop(field)
    with pytest.raises(MissingFieldsException) as exc:
        PaymentResponseVerifier(CONFIG).verify(payload)
    assert field in exc.value.missing


def test_declared_field_absent_from_payload():
    payload = signed_payload()
    payload.pop("product_code")
    with pytest.raises(MissingFieldsException) as exc:
        PaymentResponseVerifier(CONFIG).verify(payload)
    assert exc.value.missing == ["product_code"]


def test_configured_live_field_list():
    live = GatewayConfig(
        merchant_code="EPAYTEST",
        secret_key=CONFIG.secret_key,
        form_url="f",
        status_url="s",
        callback_signed_fields=(
            "transaction_code", "status", "total_amount", "transaction_uuid", "product_code", "signed_field_names",
        ),
    )
    order = "transaction_code,status,total_amount,transaction_uuid,product_code,signed_field_names"
    payload = signed_payload(order=order, transaction_code="000AE01")
    assert PaymentResponseVerifier(live).verify(payload) is True
    assert PaymentResponseVerifier(CONFIG).verify(payload) is False


def test_decode_envelope_unwraps_base64_json():
    inner = signed_payload()
    encoded = base64.b64encode(json.dumps(inner).encode()).decode()
    assert decode_envelope({"data": encoded}) == inner


def test_decode_envelope_passes_flat_payload_through():
    flat = signed_payload()
    assert decode_envelope(flat) == flat


def test_decode_envelope_rejects_garbage():
    with pytest.raises(DomainValidationException):
        decode_envelope({"data": "not-base64!!"})
