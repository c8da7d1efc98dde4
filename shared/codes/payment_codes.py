"""
Payment specific codes and gateway status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Gateway/protocol errors (6xxxx)
    PROVIDER_ERROR = 60000
    GATEWAY_UNAVAILABLE = 60001
    SIGNATURE_ERROR = 60002
    MALFORMED_ID = 60003
    MISSING_FIELDS = 60004
    INVALID_AMOUNT = 60005
    ENCODING_ERROR = 60006


# eSewa transaction status -> payment_reference.status
# Unknown values fall back to the lower-cased gateway status.
GATEWAY_STATUS_TO_REFERENCE = {
    "esewa": {
        "COMPLETE": "completed",
        "PENDING": "pending",
        "FULL_REFUND": "full_refund",
        "PARTIAL_REFUND": "partial_refund",
        "AMBIGUOUS": "ambiguous",
        "NOT_FOUND": "not_found",
        "CANCELED": "canceled",
    },
}
