# services/signature.py
"""
HMAC-SHA256 helpers for gateway callbacks.

- checkout verification signs ``order_id|payment_id`` with the key secret
- webhooks sign the raw request body bytes with the webhook secret
"""

import hmac
import hashlib
from typing import Optional, Union

BytesLike = Union[bytes, str]


def _to_bytes(value: BytesLike) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(message: BytesLike, secret: BytesLike) -> str:
    """Hex digest of HMAC-SHA256(secret, message)"""
    return hmac.new(_to_bytes(secret), _to_bytes(message), hashlib.sha256).hexdigest()


def verify(candidate: Optional[str], expected: str) -> bool:
    """Timing-safe comparison of a received signature against the expected one"""
    if not candidate or not expected:
        return False
    return hmac.compare_digest(_to_bytes(candidate), _to_bytes(expected))


def payment_message(order_id: str, payment_id: str) -> bytes:
    return f"{order_id}|{payment_id}".encode("utf-8")


def verify_payment_signature(order_id: str, payment_id: str, signature: Optional[str], secret: BytesLike) -> bool:
    return verify(signature, compute_signature(payment_message(order_id, payment_id), secret))


def verify_webhook_signature(raw_body: bytes, signature: Optional[str], secret: BytesLike) -> bool:
    return verify(signature, compute_signature(raw_body, secret))
