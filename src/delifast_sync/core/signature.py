"""Shopify Webhook Signature Verification.

Shopify signs each webhook with HMAC-SHA256 over the raw request body using the
app's API secret, base64 encoded in the ``X-Shopify-Hmac-Sha256`` header.
"""

import base64
import hashlib
import hmac
from typing import Optional

from delifast_sync.core.logger import setup_logger

logger = setup_logger(__name__)


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Base64 HMAC-SHA256 digest of the body."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook_signature(
    raw_body: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
) -> bool:
    """
    Verify a Shopify webhook signature.

    Args:
        raw_body: Raw request body (NOT parsed JSON)
        signature_header: Value from X-Shopify-Hmac-Sha256 header
        secret: Shopify API secret; verification is skipped when unset

    Returns:
        True if the signature is valid or no secret is configured
    """
    if not secret:
        logger.debug("Shopify API secret not configured, skipping HMAC verification")
        return True

    if not signature_header:
        logger.warning("Webhook received without X-Shopify-Hmac-Sha256 header")
        return False

    expected = compute_signature(raw_body, secret)
    if hmac.compare_digest(expected.encode("ascii"), signature_header.encode("utf-8")):
        return True

    logger.warning(f"Invalid webhook signature. Got: {signature_header[:16]}...")
    return False
