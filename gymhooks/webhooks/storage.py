"""SQLite storage shared by the webhook registry and delivery ledger."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite
import structlog

from gymhooks.config import settings

logger = structlog.get_logger(__name__)


class WebhookDatabase:
    """SQLite database holding webhook subscriptions and delivery history.

    A connection is opened per operation, so concurrent delivery
    pipelines never share a connection object.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        """Initialize the database handle.

        Args:
            db_path: Path to SQLite database. Uses WEBHOOK_DB_PATH if not provided.
        """
        self.db_path = Path(db_path) if db_path else Path(settings.WEBHOOK_DB_PATH)
        self._logger = logger.bind(component="webhook_database")
        self._initialized = False

    async def initialize(self) -> None:
        """Ensure database tables exist."""
        if self._initialized:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS webhooks (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    url TEXT NOT NULL,
                    events_json TEXT NOT NULL,
                    secret TEXT,
                    retry_count INTEGER,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    last_triggered_at TEXT,
                    last_success_at TEXT,
                    last_failure_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # No foreign key: history outlives deleted webhooks
            await db.execute("""
                CREATE TABLE IF NOT EXISTS webhook_events (
                    id TEXT PRIMARY KEY,
                    webhook_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    status TEXT NOT NULL,
                    response_code INTEGER,
                    response_body TEXT,
                    attempts INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_webhooks_created_at
                ON webhooks(created_at)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_webhook_events_webhook_created
                ON webhook_events(webhook_id, created_at)
            """)

            await db.commit()

        self._initialized = True
        self._logger.info("database_initialized", db_path=str(self.db_path))

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection with dict-like rows.

        Yields:
            An open aiosqlite connection.
        """
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            yield db


# Global database instance
_database: WebhookDatabase | None = None


def get_webhook_database() -> WebhookDatabase:
    """Get the global webhook database.

    Returns:
        Singleton WebhookDatabase.
    """
    global _database
    if _database is None:
        _database = WebhookDatabase()
    return _database


def set_webhook_database(database: WebhookDatabase | None) -> None:
    """Set the global webhook database.

    Useful for testing.

    Args:
        database: WebhookDatabase instance.
    """
    global _database
    _database = database
