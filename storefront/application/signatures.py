"""HMAC-SHA256 signatures used by the payment gateway.

The webhook signature covers the exact raw request body; the storefront
confirmation signature covers ``"<gateway order id>|<gateway payment id>"``.
Both are lowercase hex digests compared in constant time.
"""

import hashlib
import hmac
from typing import Optional, Union


def compute_signature(secret: str, message: Union[bytes, str]) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def payment_signature_message(order_ref: str, payment_ref: str) -> str:
    return f"{order_ref}|{payment_ref}"


def _matches(expected: str, supplied: Optional[str]) -> bool:
    if not supplied:
        return False
    supplied = supplied.strip()
    try:
        return hmac.compare_digest(expected.encode("ascii"), supplied.encode("ascii"))
    except UnicodeEncodeError:
        # Non-ASCII input can never be a hex digest
        return False


def verify_webhook_signature(secret: str, raw_body: bytes, signature: Optional[str]) -> bool:
    return _matches(compute_signature(secret, raw_body), signature)


def verify_payment_signature(secret: str, order_ref: str, payment_ref: str, signature: Optional[str]) -> bool:
    return _matches(compute_signature(secret, payment_signature_message(order_ref, payment_ref)), signature)
