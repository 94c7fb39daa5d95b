"""HMAC-SHA256 verification of inbound webhook payloads.

GitHub signs each delivery with the shared webhook secret and sends the
result as ``X-Hub-Signature-256: sha256=<hex digest>``.
"""

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_digest(payload: bytes, secret: str) -> str:
    """Lowercase hex HMAC-SHA256 of the raw payload bytes."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def sign_payload(payload: bytes, secret: str) -> str:
    """Return the signature header value a sender would attach to ``payload``."""
    return SIGNATURE_PREFIX + compute_digest(payload, secret)


def verify_signature(payload: bytes, signature: str | None, secret: str | None) -> bool:
    """Check a webhook signature header against the raw payload.

    An empty secret disables verification and returns True. The host decides
    whether that mode is allowed (see ``allow_unsigned_webhooks``).
    """
    if not secret:
        logger.warning("Webhook secret not configured, signature verification disabled")
        return True

    if not signature:
        logger.warning("Missing webhook signature header")
        return False

    if not signature.startswith(SIGNATURE_PREFIX):
        logger.warning("Invalid signature format, expected '%s' prefix", SIGNATURE_PREFIX)
        return False

    expected = compute_digest(payload, secret)
    received = signature[len(SIGNATURE_PREFIX):]
    return hmac.compare_digest(expected.encode("ascii"), received.encode("utf-8", "replace"))
