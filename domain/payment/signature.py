"""
签名编解码 - eSewa 协议的 HMAC-SHA256 签名

规范串为按给定顺序拼接的 ``name=value``，以逗号分隔；签名为
Base64(HMAC-SHA256(规范串, secret))。顺序敏感：验签方必须使用与签名方相同的字段顺序。
纯函数，无 I/O。
"""
from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Iterable, Sequence, Tuple

from domain.common.exceptions import SignatureEncodingException


SignedField = Tuple[str, str]


def canonical_string(fields: Iterable[SignedField]) -> str:
    """按给定顺序生成规范串"""
    parts = []
    for name, value in fields:
        if not isinstance(name, str):
            raise SignatureEncodingException(name)
        if not isinstance(value, str):
            raise SignatureEncodingException(name)
        parts.append(f"{name}={value}")
    return ",".join(parts)


def sign(fields: Sequence[SignedField], secret: str) -> str:
    if not isinstance(secret, str):
        raise SignatureEncodingException("secret")
    digest = hmac.new(
        secret.encode("utf-8"),
        canonical_string(fields).encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def verify(fields: Sequence[SignedField], provided_signature: str, secret: str) -> bool:
    """常量时间比较，避免时序侧信道"""
    if not isinstance(provided_signature, str):
        return False
    expected = sign(fields, secret)
    return hmac.compare_digest(expected.encode("ascii"), provided_signature.encode("utf-8"))
