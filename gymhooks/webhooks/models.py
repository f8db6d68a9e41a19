"""Webhook subscription and delivery record models."""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


class WebhookEventStatus(str, Enum):
    """Status written with each delivery attempt.

    PENDING marks a failed attempt that will be retried; SUCCESS and FAILED
    are terminal.
    """

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Webhook(BaseModel):
    """A registered webhook subscription."""

    id: str = Field(
        default_factory=lambda: f"wh_{uuid.uuid4().hex[:12]}",
        description="Unique webhook identifier",
    )
    name: str = Field(..., description="Human-readable label")
    url: str = Field(..., description="Absolute http(s) endpoint URL")
    events: list[str] = Field(
        ..., description="Event types this webhook receives"
    )
    secret: str | None = Field(
        default=None,
        description="Shared secret for HMAC signatures (unsigned if unset)",
    )
    retry_count: int | None = Field(
        default=None,
        description="Maximum attempts per event (default applies if unset)",
    )
    is_active: bool = Field(
        default=True,
        description="Whether webhook receives events",
    )

    # Health timestamps
    last_triggered_at: datetime | None = None
    last_success_at: datetime | None = None
    last_failure_at: datetime | None = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def subscribes_to(self, event_type: str) -> bool:
        """Check if this webhook subscribes to an event type.

        Args:
            event_type: Event type to check.

        Returns:
            True if the event type is in the webhook's events set.
        """
        return event_type in self.events

    def max_attempts(self, default: int) -> int:
        """Attempt budget for one delivery.

        Args:
            default: Budget used when the webhook sets no retry_count.

        Returns:
            Maximum number of attempts.
        """
        return self.retry_count or default


class WebhookEvent(BaseModel):
    """Ledger entry recording a single delivery attempt."""

    id: str = Field(
        default_factory=lambda: f"dlv_{uuid.uuid4().hex[:12]}",
        description="Unique record identifier",
    )
    webhook_id: str = Field(..., description="Owning webhook ID")
    event_type: str = Field(..., description="Domain event that triggered delivery")
    payload: str = Field(..., description="Exact JSON body sent")
    status: WebhookEventStatus
    response_code: int | None = Field(
        default=None,
        description="HTTP status code (null if no response was received)",
    )
    response_body: str | None = Field(
        default=None,
        description="Response body or error text (truncated)",
    )
    attempts: int = Field(..., ge=1, description="1-based attempt number")
    created_at: datetime = Field(default_factory=_utcnow)

    def payload_json(self) -> Any:
        """Decode the stored body, falling back to raw text."""
        try:
            return json.loads(self.payload)
        except ValueError:
            return self.payload


class DeliveryHistoryPage(BaseModel):
    """One page of delivery history, newest first."""

    events: list[WebhookEvent]
    total: int
    page: int
    limit: int
    total_pages: int
