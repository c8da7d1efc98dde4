from decimal import Decimal

import pytest

from domain.common.exceptions import InvalidAmountException
from domain.payment.config import GatewayConfig
from domain.payment.request_builder import PaymentRequestBuilder
from domain.payment.signature import verify
from tests.fakes import make_order


CONFIG = GatewayConfig(
    merchant_code="EPAYTEST",
    secret_key="8gBm/:&EnhH.1/q",
    form_url="https://rc-epay.esewa.com.np/api/epay/main/v2/form",
    status_url="https://rc.esewa.com.np/api/epay/transaction/status/",
)


def test_split_is_tax_inclusive():
    split = PaymentRequestBuilder(CONFIG).split_amount(Decimal("1000"))
    assert split["tax_amount"] == Decimal("130.00")
    assert split["amount"] == Decimal("870.00")
    assert split["amount"] + split["tax_amount"] == split["total_amount"]


def test_split_rounds_half_up_and_still_sums():
    split = PaymentRequestBuilder(CONFIG).split_amount("10.05")
    # 10.05 * 0.13 = 1.3065 -> 1.31
    assert split["tax_amount"] == Decimal("1.31")
    assert split["amount"] + split["tax_amount"] == Decimal("10.05")


@pytest.mark.parametrize("bad", [None, "abc", "NaN", "Infinity", -1, True])
def test_invalid_totals_are_rejected(bad):
    with pytest.raises(InvalidAmountException):
        PaymentRequestBuilder(CONFIG).split_amount(bad)


def test_build_produces_signed_form():
    order = make_order(total="1000.00")
    fields = PaymentRequestBuilder(CONFIG).build(order, "http://shop/success", "http://shop/failure")

    assert fields["amount"] == "870.00"
    assert fields["tax_amount"] == "130.00"
    assert fields["total_amount"] == "1000.00"
    assert fields["transaction_uuid"] == order.id
    assert fields["product_code"] == "EPAYTEST"
    assert fields["product_service_charge"] == "0"
    assert fields["product_delivery_charge"] == "0"
    assert fields["signed_field_names"] == "total_amount,transaction_uuid,product_code"
    assert fields["payment_url"] == CONFIG.form_url

    signed = [(name, fields[name]) for name in fields["signed_field_names"].split(",")]
    assert verify(signed, fields["signature"], CONFIG.secret_key)


def test_build_does_not_touch_the_order():
    order = make_order()
    PaymentRequestBuilder(CONFIG).build(order, "s", "f")
    assert order.payment_reference is None
