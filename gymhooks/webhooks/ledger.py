"""Delivery history ledger.

Append-only log of delivery attempts. Every attempt of every delivery
pipeline writes its own row; rows are never updated and are kept when
their webhook is deleted.
"""

import math
from datetime import datetime

import aiosqlite
import structlog

from gymhooks.errors import LedgerWriteError
from gymhooks.webhooks.models import DeliveryHistoryPage, WebhookEvent, WebhookEventStatus
from gymhooks.webhooks.storage import WebhookDatabase, get_webhook_database

logger = structlog.get_logger(__name__)

# Stored response/error text is cut to this many characters
MAX_RESPONSE_BODY_CHARS = 1000

DEFAULT_PAGE_SIZE = 20


def _row_to_event(row: aiosqlite.Row) -> WebhookEvent:
    return WebhookEvent(
        id=row["id"],
        webhook_id=row["webhook_id"],
        event_type=row["event_type"],
        payload=row["payload"],
        status=WebhookEventStatus(row["status"]),
        response_code=row["response_code"],
        response_body=row["response_body"],
        attempts=row["attempts"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class DeliveryLedger:
    """SQLite-backed delivery history."""

    def __init__(self, database: WebhookDatabase | None = None) -> None:
        """Initialize the ledger.

        Args:
            database: Backing database (uses global if not provided).
        """
        self._db = database or get_webhook_database()
        self._logger = logger.bind(component="delivery_ledger")

    async def record(
        self,
        *,
        webhook_id: str,
        event_type: str,
        payload: str,
        status: WebhookEventStatus,
        attempts: int,
        response_code: int | None = None,
        response_body: str | None = None,
    ) -> WebhookEvent:
        """Append the outcome of one attempt.

        Args:
            webhook_id: Target webhook.
            event_type: Event that triggered the delivery.
            payload: Exact body that was sent.
            status: Attempt status.
            attempts: 1-based attempt number.
            response_code: HTTP status, if a response was received.
            response_body: Response or error text (truncated here).

        Returns:
            The stored record.

        Raises:
            LedgerWriteError: If the row cannot be written.
        """
        event = WebhookEvent(
            webhook_id=webhook_id,
            event_type=event_type,
            payload=payload,
            status=status,
            attempts=attempts,
            response_code=response_code,
            response_body=response_body[:MAX_RESPONSE_BODY_CHARS] if response_body else response_body,
        )

        try:
            async with self._db.connect() as db:
                await db.execute(
                    """
                    INSERT INTO webhook_events (
                        id, webhook_id, event_type, payload, status,
                        response_code, response_body, attempts, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.id,
                        event.webhook_id,
                        event.event_type,
                        event.payload,
                        event.status.value,
                        event.response_code,
                        event.response_body,
                        event.attempts,
                        event.created_at.isoformat(),
                    ),
                )
                await db.commit()
        except (aiosqlite.Error, OSError) as e:
            raise LedgerWriteError(webhook_id, attempts, e) from e

        self._logger.debug(
            "delivery_recorded",
            record_id=event.id,
            webhook_id=webhook_id,
            status=status.value,
            attempts=attempts,
        )

        return event

    async def list_history(
        self,
        webhook_id: str,
        *,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> DeliveryHistoryPage:
        """List delivery records for a webhook, newest first.

        Works for deleted webhooks as well, since history is retained.

        Args:
            webhook_id: Webhook identifier.
            page: 1-based page number.
            limit: Page size.

        Returns:
            The requested page with total count and page count.
        """
        page = max(page, 1)
        limit = max(limit, 1)
        offset = (page - 1) * limit

        async with self._db.connect() as db:
            async with db.execute(
                """
                SELECT * FROM webhook_events
                WHERE webhook_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (webhook_id, limit, offset),
            ) as cursor:
                rows = await cursor.fetchall()

            async with db.execute(
                "SELECT COUNT(*) FROM webhook_events WHERE webhook_id = ?",
                (webhook_id,),
            ) as cursor:
                (total,) = await cursor.fetchone()

        return DeliveryHistoryPage(
            events=[_row_to_event(row) for row in rows],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        )

    async def count_for(self, webhook_id: str) -> int:
        """Number of records written for a webhook."""
        async with self._db.connect() as db:
            async with db.execute(
                "SELECT COUNT(*) FROM webhook_events WHERE webhook_id = ?",
                (webhook_id,),
            ) as cursor:
                (total,) = await cursor.fetchone()
        return total

    async def counts_by_webhook(self) -> dict[str, int]:
        """Record counts keyed by webhook id."""
        async with self._db.connect() as db:
            async with db.execute(
                "SELECT webhook_id, COUNT(*) AS total FROM webhook_events GROUP BY webhook_id"
            ) as cursor:
                rows = await cursor.fetchall()
        return {row["webhook_id"]: row["total"] for row in rows}


# Global ledger instance
_ledger: DeliveryLedger | None = None


def get_delivery_ledger() -> DeliveryLedger:
    """Get the global delivery ledger.

    Returns:
        Singleton DeliveryLedger.
    """
    global _ledger
    if _ledger is None:
        _ledger = DeliveryLedger()
    return _ledger


def set_delivery_ledger(ledger: DeliveryLedger | None) -> None:
    """Set the global delivery ledger.

    Useful for testing.

    Args:
        ledger: DeliveryLedger instance.
    """
    global _ledger
    _ledger = ledger
