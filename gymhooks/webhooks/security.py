"""Webhook security utilities.

Provides HMAC signature generation and verification for webhook payloads
so receivers can check that a delivery came from a holder of the shared
secret and was not altered in transit.
"""

import hashlib
import hmac
from datetime import UTC, datetime

import structlog

logger = structlog.get_logger(__name__)

CONTENT_TYPE = "application/json"
USER_AGENT = "GymHooks-Webhook/1.0"

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"


def _to_bytes(body: bytes | str) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else body


def sign_payload(body: bytes | str, secret: str) -> str:
    """Generate an HMAC-SHA256 signature over the exact outgoing body.

    Args:
        body: Serialized request body (str bodies are UTF-8 encoded).
        secret: Webhook shared secret.

    Returns:
        Lowercase hex digest.
    """
    return hmac.new(
        secret.encode("utf-8"),
        _to_bytes(body),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(body: bytes | str, signature: str, secret: str) -> bool:
    """Verify an HMAC-SHA256 signature of a received body.

    Args:
        body: Raw request body as received.
        signature: Value of the signature header.
        secret: Webhook shared secret.

    Returns:
        True if the signature matches.
    """
    expected = sign_payload(body, secret)

    # Constant-time comparison
    is_valid = hmac.compare_digest(signature.lower(), expected)

    if not is_valid:
        logger.warning("webhook_signature_invalid", body_length=len(_to_bytes(body)))

    return is_valid


def build_delivery_headers(
    body: bytes | str,
    event_type: str,
    secret: str | None,
    *,
    timestamp: datetime | None = None,
) -> dict[str, str]:
    """Create the HTTP headers sent with one delivery attempt.

    Args:
        body: Serialized request body.
        event_type: Event name for the event header.
        secret: Webhook secret; no signature header is added when empty.
        timestamp: Attempt time (defaults to now).

    Returns:
        Dictionary of headers.
    """
    headers = {
        "Content-Type": CONTENT_TYPE,
        "User-Agent": USER_AGENT,
        EVENT_HEADER: event_type,
        TIMESTAMP_HEADER: (timestamp or datetime.now(UTC)).isoformat(),
    }

    if secret:
        headers[SIGNATURE_HEADER] = sign_payload(body, secret)

    return headers
