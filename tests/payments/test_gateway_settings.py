from core.settings import EsewaSettings, build_gateway_config
from domain.payment.config import LIVE_CALLBACK_SIGNED_FIELDS, REQUEST_SIGNED_FIELDS


def test_sandbox_defaults_to_request_fields():
    cfg = build_gateway_config(EsewaSettings())
    assert cfg.callback_signed_fields == REQUEST_SIGNED_FIELDS
    assert cfg.form_url.startswith("https://rc-epay.esewa.com.np")


def test_production_defaults_to_live_fields_including_status():
    cfg = build_gateway_config(EsewaSettings(production=True))
    assert cfg.callback_signed_fields == LIVE_CALLBACK_SIGNED_FIELDS
    assert "status" in cfg.callback_signed_fields
    assert cfg.status_url.startswith("https://epay.esewa.com.np")


def test_explicit_field_list_wins():
    cfg = build_gateway_config(EsewaSettings(callback_signed_fields=["status", "total_amount"]))
    assert cfg.callback_signed_fields == ("status", "total_amount")
