"""
Payment signature verification

Webhook signatures are HMAC-SHA256 over the raw request body. Checkout
signatures returned to the buyer's browser bind the provider order id
and payment id instead.
"""

from typing import Optional, Union
import hashlib
import hmac
import logging

from app.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _matches(expected: str, provided: Optional[str]) -> bool:
    if not provided:
        return False
    try:
        return hmac.compare_digest(expected, provided.strip())
    except TypeError:
        # compare_digest rejects non-ASCII str input
        return False


def compute_webhook_signature(raw_payload: bytes, secret: str) -> str:
    """Signature the provider sends for a webhook body"""
    return _hmac_sha256_hex(secret, raw_payload)


def verify(
    raw_payload: Union[bytes, bytearray],
    signature_header: Optional[str],
    secret: Optional[str]
) -> bool:
    """
    Verify a webhook signature against the exact payload bytes

    Args:
        raw_payload: Request body as received, never re-serialized
        signature_header: Hex digest from the signature header
        secret: Configured webhook secret

    Returns:
        True if the signature matches

    Raises:
        ConfigurationError: If no webhook secret is configured
    """
    if not secret:
        raise ConfigurationError("Webhook secret is not configured")

    expected = compute_webhook_signature(bytes(raw_payload), secret)
    return _matches(expected, signature_header)


def compute_payment_signature(provider_order_id: str, payment_id: str, secret: str) -> str:
    """Signature returned to the browser after checkout"""
    message = f"{provider_order_id}|{payment_id}".encode("utf-8")
    return _hmac_sha256_hex(secret, message)


def verify_payment_signature(
    provider_order_id: str,
    payment_id: str,
    signature: Optional[str],
    secret: Optional[str]
) -> bool:
    """
    Verify a checkout signature

    Raises:
        ConfigurationError: If the API key secret is not configured
    """
    if not secret:
        raise ConfigurationError("Payment key secret is not configured")

    expected = compute_payment_signature(provider_order_id, payment_id, secret)
    return _matches(expected, signature)
