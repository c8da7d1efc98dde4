"""
支付回调验签

回调载荷由外部提交，其中的 signed_field_names 不可信：可接受的字段集合与顺序由
GatewayConfig.callback_signed_fields 决定，声明不一致直接拒绝。只计算一种规范串，
验签失败后不做任何放宽。
"""
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, List, Mapping

from domain.common.exceptions import DomainValidationException, MissingFieldsException
from .config import GatewayConfig
from .signature import verify


SIGNED_FIELD_NAMES = "signed_field_names"
SIGNATURE = "signature"


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return str(value)


def decode_envelope(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    解包 eSewa v2 成功跳转携带的 ``data``（Base64 编码的 JSON）

    已经是扁平字段的载荷原样返回。
    """
    if SIGNATURE in payload or "data" not in payload:
        return dict(payload)
    raw = payload["data"]
    try:
        decoded = base64.b64decode(_as_text(raw), validate=True)
        data = json.loads(decoded.decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeDecodeError):
        raise DomainValidationException("Callback data is not valid base64 JSON", field="data") from None
    if not isinstance(data, dict):
        raise DomainValidationException("Callback data must be a JSON object", field="data")
    return data


class PaymentResponseVerifier:
    """回调验签谓词，无副作用"""

    def __init__(self, config: GatewayConfig):
        self.config = config

    def declared_fields(self, payload: Mapping[str, Any]) -> List[str]:
        missing = [name for name in (SIGNED_FIELD_NAMES, SIGNATURE) if payload.get(name) in (None, "")]
        if missing:
            raise MissingFieldsException(missing)
        fields = [name.strip() for name in _as_text(payload[SIGNED_FIELD_NAMES]).split(",")]
        absent = [name for name in fields if name not in payload]
        if absent:
            raise MissingFieldsException(absent)
        return fields

    def verify(self, payload: Mapping[str, Any]) -> bool:
        fields = self.declared_fields(payload)
        expected = list(self.config.callback_signed_fields)
        if fields != expected:
            return False
        pairs = [(name, _as_text(payload[name])) for name in fields]
        return verify(pairs, _as_text(payload[SIGNATURE]), self.config.secret_key)
