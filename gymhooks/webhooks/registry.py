"""Webhook registration and management.

Provides validated CRUD over webhook subscriptions and the health
timestamps that delivery pipelines stamp when they finish.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog
from pydantic import HttpUrl, TypeAdapter, ValidationError

from gymhooks.errors import WebhookNotFoundError, WebhookValidationError
from gymhooks.webhooks.models import Webhook
from gymhooks.webhooks.storage import WebhookDatabase, get_webhook_database

logger = structlog.get_logger(__name__)

MUTABLE_FIELDS = frozenset({"name", "url", "events", "secret", "is_active", "retry_count"})

_http_url = TypeAdapter(HttpUrl)


# ============================================================================
# Validation
# ============================================================================


def validate_url(url: Any) -> str:
    """Check that a value is an absolute http(s) URL.

    Args:
        url: Candidate URL.

    Returns:
        The URL with surrounding whitespace removed.

    Raises:
        WebhookValidationError: If the URL does not parse.
    """
    if not isinstance(url, str) or not url.strip():
        raise WebhookValidationError("URL is required", field="url")

    candidate = url.strip()
    try:
        _http_url.validate_python(candidate)
    except ValidationError as e:
        raise WebhookValidationError("Invalid URL format", field="url") from e

    return candidate


def validate_events(events: Any) -> list[str]:
    """Normalize an events list into a de-duplicated list of names.

    Args:
        events: Candidate list of event-type strings.

    Returns:
        Event names in first-seen order.

    Raises:
        WebhookValidationError: If the list is empty or holds non-strings.
    """
    if isinstance(events, str) or not isinstance(events, Iterable):
        raise WebhookValidationError("Events must be a list of event types", field="events")

    normalized: list[str] = []
    for event in events:
        if not isinstance(event, str) or not event.strip():
            raise WebhookValidationError(
                "Event types must be non-empty strings", field="events"
            )
        name = event.strip()
        if name not in normalized:
            normalized.append(name)

    if not normalized:
        raise WebhookValidationError("At least one event is required", field="events")

    return normalized


def _validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise WebhookValidationError("Name is required", field="name")
    return name.strip()


def _validate_retry_count(retry_count: Any) -> int | None:
    if retry_count is None:
        return None
    if isinstance(retry_count, bool) or not isinstance(retry_count, int) or retry_count < 1:
        raise WebhookValidationError(
            "retry_count must be a positive integer", field="retry_count"
        )
    return retry_count


def _validate_is_active(is_active: Any) -> bool:
    if not isinstance(is_active, bool):
        raise WebhookValidationError("is_active must be a boolean", field="is_active")
    return is_active


def _normalize_secret(secret: Any) -> str | None:
    if secret is None or secret == "":
        return None
    if not isinstance(secret, str):
        raise WebhookValidationError("Secret must be a string", field="secret")
    return secret


_VALIDATORS = {
    "name": _validate_name,
    "url": validate_url,
    "events": validate_events,
    "secret": _normalize_secret,
    "is_active": _validate_is_active,
    "retry_count": _validate_retry_count,
}


# ============================================================================
# Row mapping
# ============================================================================


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_webhook(row: aiosqlite.Row) -> Webhook:
    return Webhook(
        id=row["id"],
        name=row["name"],
        url=row["url"],
        events=json.loads(row["events_json"]),
        secret=row["secret"],
        retry_count=row["retry_count"],
        is_active=bool(row["is_active"]),
        last_triggered_at=_dt(row["last_triggered_at"]),
        last_success_at=_dt(row["last_success_at"]),
        last_failure_at=_dt(row["last_failure_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _to_column(field: str, value: Any) -> tuple[str, Any]:
    if field == "events":
        return "events_json", json.dumps(value)
    if field == "is_active":
        return "is_active", 1 if value else 0
    return field, value


# ============================================================================
# Registry
# ============================================================================


class WebhookRegistry:
    """Manages webhook subscriptions.

    Provides CRUD operations for webhooks plus the lookups and health
    updates used by the dispatcher.
    """

    def __init__(self, database: WebhookDatabase | None = None) -> None:
        """Initialize the registry.

        Args:
            database: Backing database (uses global if not provided).
        """
        self._db = database or get_webhook_database()
        self._logger = logger.bind(component="webhook_registry")

    async def create(
        self,
        *,
        name: str,
        url: str,
        events: list[str],
        secret: str | None = None,
        is_active: bool = True,
        retry_count: int | None = None,
    ) -> Webhook:
        """Register a new webhook.

        Args:
            name: Human-readable label.
            url: Absolute http(s) endpoint URL.
            events: Event types to subscribe to (at least one).
            secret: Optional shared secret for signing.
            is_active: Whether the webhook receives events.
            retry_count: Maximum attempts per event (default applies if None).

        Returns:
            Created webhook.

        Raises:
            WebhookValidationError: If any field is invalid.
        """
        webhook = Webhook(
            name=_validate_name(name),
            url=validate_url(url),
            events=validate_events(events),
            secret=_normalize_secret(secret),
            is_active=_validate_is_active(is_active),
            retry_count=_validate_retry_count(retry_count),
        )

        async with self._db.connect() as db:
            await db.execute(
                """
                INSERT INTO webhooks (
                    id, name, url, events_json, secret, retry_count,
                    is_active, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    webhook.id,
                    webhook.name,
                    webhook.url,
                    json.dumps(webhook.events),
                    webhook.secret,
                    webhook.retry_count,
                    1 if webhook.is_active else 0,
                    webhook.created_at.isoformat(),
                    webhook.updated_at.isoformat(),
                ),
            )
            await db.commit()

        self._logger.info(
            "webhook_registered",
            webhook_id=webhook.id,
            url=webhook.url,
            event_count=len(webhook.events),
            signed=webhook.secret is not None,
        )

        return webhook

    async def get(self, webhook_id: str) -> Webhook | None:
        """Get a webhook by ID.

        Args:
            webhook_id: Webhook identifier.

        Returns:
            Webhook if found, None otherwise.
        """
        async with self._db.connect() as db:
            async with db.execute(
                "SELECT * FROM webhooks WHERE id = ?",
                (webhook_id,),
            ) as cursor:
                row = await cursor.fetchone()

        return _row_to_webhook(row) if row else None

    async def require(self, webhook_id: str) -> Webhook:
        """Get a webhook by ID or raise.

        Raises:
            WebhookNotFoundError: If no webhook has this ID.
        """
        webhook = await self.get(webhook_id)
        if webhook is None:
            raise WebhookNotFoundError(webhook_id)
        return webhook

    async def list_all(self, *, active_only: bool = False) -> list[Webhook]:
        """List webhooks, newest first.

        Args:
            active_only: Only return active webhooks.

        Returns:
            List of webhooks.
        """
        query = "SELECT * FROM webhooks"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY created_at DESC, rowid DESC"

        async with self._db.connect() as db:
            async with db.execute(query) as cursor:
                rows = await cursor.fetchall()

        return [_row_to_webhook(row) for row in rows]

    async def list_active_for_event(self, event_type: str) -> list[Webhook]:
        """Get all active webhooks subscribed to an event type.

        Args:
            event_type: Event type.

        Returns:
            List of active webhooks whose events contain the type.
        """
        webhooks = await self.list_all(active_only=True)
        return [w for w in webhooks if w.subscribes_to(event_type)]

    async def update(self, webhook_id: str, **changes: Any) -> Webhook:
        """Update any subset of a webhook's mutable fields.

        Args:
            webhook_id: Webhook identifier.
            **changes: New values for name, url, events, secret,
                is_active or retry_count. An empty secret clears it and a
                None retry_count restores the default.

        Returns:
            Updated webhook.

        Raises:
            WebhookValidationError: If a field is unknown or invalid.
            WebhookNotFoundError: If the webhook does not exist.
        """
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise WebhookValidationError(
                f"Unknown fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )

        validated = {field: _VALIDATORS[field](value) for field, value in changes.items()}

        assignments = ["updated_at = ?"]
        params: list[Any] = [datetime.now(UTC).isoformat()]
        for field, value in validated.items():
            column, db_value = _to_column(field, value)
            assignments.append(f"{column} = ?")
            params.append(db_value)
        params.append(webhook_id)

        async with self._db.connect() as db:
            cursor = await db.execute(
                f"UPDATE webhooks SET {', '.join(assignments)} WHERE id = ?",
                params,
            )
            await db.commit()
            updated_rows = cursor.rowcount

        if updated_rows == 0:
            raise WebhookNotFoundError(webhook_id)

        self._logger.info(
            "webhook_updated",
            webhook_id=webhook_id,
            fields=sorted(validated),
        )

        return await self.require(webhook_id)

    async def delete(self, webhook_id: str) -> None:
        """Delete a webhook. Its delivery history is kept.

        Args:
            webhook_id: Webhook identifier.

        Raises:
            WebhookNotFoundError: If the webhook does not exist.
        """
        async with self._db.connect() as db:
            cursor = await db.execute("DELETE FROM webhooks WHERE id = ?", (webhook_id,))
            await db.commit()
            deleted_rows = cursor.rowcount

        if deleted_rows == 0:
            raise WebhookNotFoundError(webhook_id)

        self._logger.info("webhook_deleted", webhook_id=webhook_id)

    async def mark_delivery(self, webhook_id: str, *, success: bool) -> bool:
        """Stamp health timestamps after a delivery reaches a terminal state.

        Args:
            webhook_id: Webhook identifier.
            success: Whether the delivery succeeded.

        Returns:
            True if the webhook still exists and was updated.
        """
        now = datetime.now(UTC).isoformat()
        outcome_column = "last_success_at" if success else "last_failure_at"

        async with self._db.connect() as db:
            cursor = await db.execute(
                f"UPDATE webhooks SET last_triggered_at = ?, {outcome_column} = ? WHERE id = ?",
                (now, now, webhook_id),
            )
            await db.commit()
            updated = cursor.rowcount > 0

        if not updated:
            self._logger.debug("health_update_skipped_missing_webhook", webhook_id=webhook_id)

        return updated


# Global registry instance
_registry: WebhookRegistry | None = None


def get_webhook_registry() -> WebhookRegistry:
    """Get the global webhook registry instance.

    Returns:
        Singleton WebhookRegistry.
    """
    global _registry
    if _registry is None:
        _registry = WebhookRegistry()
    return _registry


def set_webhook_registry(registry: WebhookRegistry | None) -> None:
    """Set the global webhook registry instance.

    Useful for testing.

    Args:
        registry: WebhookRegistry instance.
    """
    global _registry
    _registry = registry
