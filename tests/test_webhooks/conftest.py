"""Shared fixtures for webhook tests."""

from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from gymhooks.webhooks.dispatcher import WebhookDispatcher
from gymhooks.webhooks.executor import DeliveryExecutor
from gymhooks.webhooks.ledger import DeliveryLedger
from gymhooks.webhooks.registry import WebhookRegistry
from gymhooks.webhooks.storage import WebhookDatabase


@pytest.fixture
def database(tmp_path):
    """Create a database in a temp directory."""
    return WebhookDatabase(db_path=tmp_path / "webhooks.db")


@pytest.fixture
def registry(database):
    """Create test webhook registry."""
    return WebhookRegistry(database)


@pytest.fixture
def ledger(database):
    """Create test delivery ledger."""
    return DeliveryLedger(database)


@pytest.fixture
def sleep():
    """Stand-in for asyncio.sleep that records backoff delays."""
    return AsyncMock()


@pytest.fixture
def make_dispatcher(registry, ledger, sleep) -> Callable[..., WebhookDispatcher]:
    """Build a dispatcher whose HTTP calls go to a mock transport."""

    def _make(transport: httpx.AsyncBaseTransport, **kwargs) -> WebhookDispatcher:
        return WebhookDispatcher(
            registry,
            ledger,
            DeliveryExecutor(timeout_seconds=1.0, transport=transport),
            default_retry_count=kwargs.pop("default_retry_count", 3),
            backoff_unit_seconds=kwargs.pop("backoff_unit_seconds", 1.0),
            sleep=sleep,
            **kwargs,
        )

    return _make


class RecordingEndpoint:
    """Mock endpoint returning scripted status codes and keeping requests."""

    def __init__(self, *statuses: int, body: str = '{"ok":true}') -> None:
        self.statuses = statuses or (200,)
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.statuses)) - 1
        return httpx.Response(self.statuses[index], text=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def endpoint_factory() -> Callable[..., RecordingEndpoint]:
    """Factory for scripted mock endpoints."""
    return RecordingEndpoint
