"""Webhook event envelopes.

Event types are free-form strings (``payment.completed``,
``member.created``...) chosen by the callers that trigger them. This module
only builds the JSON envelope that is delivered, and serializes it the one
way that is both signed and sent.
"""

import json
from datetime import UTC, datetime
from typing import Any

# Event used by connectivity tests from the admin screens
TEST_EVENT_TYPE = "webhook.test"


def build_envelope(
    event_type: str,
    data: dict[str, Any] | None = None,
    *,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Wrap event data in the standard delivery envelope.

    Args:
        event_type: Domain event name.
        data: Event-specific data.
        timestamp: When the event occurred (defaults to now).

    Returns:
        Dictionary with ``event``, ``timestamp`` and ``data`` keys.
    """
    return {
        "event": event_type,
        "timestamp": (timestamp or datetime.now(UTC)).isoformat(),
        "data": data or {},
    }


def build_test_envelope() -> dict[str, Any]:
    """Build the synthetic payload sent by a webhook test."""
    return build_envelope(
        TEST_EVENT_TYPE,
        {"message": "This is a test webhook event"},
    )


def serialize_payload(payload: dict[str, Any]) -> str:
    """Serialize a payload to the exact JSON text that is signed and sent.

    Args:
        payload: JSON-compatible payload.

    Returns:
        Compact JSON string.
    """
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)
