"""Webhook event dispatcher.

Fans a domain event out to every active webhook subscribed to it. Each
webhook gets its own background task running the retry scheduler, so the
caller never waits on delivery and one slow endpoint never holds up
another.
"""

import asyncio
from typing import Any

import structlog

from gymhooks.config import settings
from gymhooks.errors import WebhookInactiveError, WebhookValidationError
from gymhooks.webhooks.events import (
    TEST_EVENT_TYPE,
    build_envelope,
    build_test_envelope,
    serialize_payload,
)
from gymhooks.webhooks.executor import DeliveryExecutor
from gymhooks.webhooks.ledger import DeliveryLedger, get_delivery_ledger
from gymhooks.webhooks.models import Webhook
from gymhooks.webhooks.registry import WebhookRegistry, get_webhook_registry
from gymhooks.webhooks.scheduler import DeliveryResult, RetryScheduler, SleepFn

logger = structlog.get_logger(__name__)


class WebhookDispatcher:
    """Dispatches webhook events to registered endpoints.

    Features:
    - Fire-and-forget fan-out, one task per subscribed webhook
    - Bounded concurrent HTTP attempts
    - Test deliveries to a single webhook
    - Graceful shutdown with a grace period
    """

    def __init__(
        self,
        registry: WebhookRegistry | None = None,
        ledger: DeliveryLedger | None = None,
        executor: DeliveryExecutor | None = None,
        *,
        max_concurrent_deliveries: int | None = None,
        default_retry_count: int | None = None,
        backoff_unit_seconds: float | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            registry: Webhook registry (uses global if not provided).
            ledger: Delivery ledger (uses global if not provided).
            executor: HTTP executor (a default one if not provided).
            max_concurrent_deliveries: Max concurrent HTTP attempts.
            default_retry_count: Attempts when a webhook sets none.
            backoff_unit_seconds: Length of one backoff unit.
            sleep: Awaitable sleep used between attempts.
        """
        self._registry = registry or get_webhook_registry()
        self._ledger = ledger or get_delivery_ledger()
        self._executor = executor or DeliveryExecutor()
        self._max_concurrent = (
            max_concurrent_deliveries or settings.WEBHOOK_MAX_CONCURRENT_DELIVERIES
        )
        self._scheduler = RetryScheduler(
            self._executor,
            self._ledger,
            self._registry,
            default_retry_count=default_retry_count,
            backoff_unit_seconds=backoff_unit_seconds,
            sleep=sleep,
            attempt_slots=asyncio.Semaphore(self._max_concurrent),
        )
        self._background_tasks: set[asyncio.Task[DeliveryResult | None]] = set()
        self._logger = logger.bind(component="webhook_dispatcher")

    @property
    def pending_deliveries(self) -> int:
        """Number of delivery pipelines still running."""
        return len(self._background_tasks)

    async def trigger(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        *,
        wrap: bool = True,
        wait: bool = False,
    ) -> list[str]:
        """Dispatch an event to all active webhooks subscribed to it.

        Args:
            event_type: Domain event name.
            payload: Event data. Wrapped in an ``{event, timestamp, data}``
                envelope unless ``wrap`` is False.
            wrap: Send ``payload`` inside the standard envelope.
            wait: If True, wait for all deliveries to finish.

        Returns:
            IDs of the webhooks a delivery was started for.

        Raises:
            WebhookValidationError: If the event type is empty.
        """
        if not isinstance(event_type, str) or not event_type.strip():
            raise WebhookValidationError("Event type is required", field="event_type")

        webhooks = await self._registry.list_active_for_event(event_type)

        if not webhooks:
            self._logger.debug("no_webhooks_subscribed", event_type=event_type)
            return []

        body = serialize_payload(
            build_envelope(event_type, payload) if wrap else (payload or {})
        )

        tasks = [self._launch(webhook, event_type, body) for webhook in webhooks]

        self._logger.info(
            "event_dispatched",
            event_type=event_type,
            webhook_count=len(webhooks),
        )

        if wait:
            await asyncio.gather(*tasks)

        return [webhook.id for webhook in webhooks]

    async def send_test(self, webhook_id: str, *, wait: bool = False) -> Webhook:
        """Send a synthetic ``webhook.test`` event to one webhook.

        The webhook's events filter is bypassed; the delivery runs through
        the normal pipeline and shows up in its history.

        Args:
            webhook_id: Webhook to test.
            wait: If True, wait for the delivery to finish.

        Returns:
            The webhook the test was sent to.

        Raises:
            WebhookNotFoundError: If the webhook does not exist.
            WebhookInactiveError: If the webhook is inactive.
        """
        webhook = await self._registry.require(webhook_id)
        if not webhook.is_active:
            raise WebhookInactiveError(webhook_id)

        body = serialize_payload(build_test_envelope())
        task = self._launch(webhook, TEST_EVENT_TYPE, body)

        self._logger.info("test_event_dispatched", webhook_id=webhook_id)

        if wait:
            await task

        return webhook

    def _launch(
        self,
        webhook: Webhook,
        event_type: str,
        body: str,
    ) -> asyncio.Task[DeliveryResult | None]:
        task = asyncio.create_task(
            self._run_pipeline(webhook, event_type, body),
            name=f"webhook-delivery-{webhook.id}",
        )
        # Track background task
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _run_pipeline(
        self,
        webhook: Webhook,
        event_type: str,
        body: str,
    ) -> DeliveryResult | None:
        """Run one delivery pipeline, containing any unexpected error."""
        try:
            return await self._scheduler.deliver(webhook, event_type, body)
        except Exception:
            self._logger.exception(
                "delivery_pipeline_aborted",
                webhook_id=webhook.id,
                event_type=event_type,
            )
            return None

    async def shutdown(self, grace_seconds: float | None = None) -> None:
        """Wait for in-flight deliveries, then cancel what is left.

        Args:
            grace_seconds: How long to wait (defaults to settings).
        """
        if not self._background_tasks:
            return

        grace = (
            grace_seconds
            if grace_seconds is not None
            else settings.WEBHOOK_SHUTDOWN_GRACE_SECONDS
        )
        self._logger.info(
            "waiting_for_pending_deliveries",
            count=len(self._background_tasks),
            grace_seconds=grace,
        )

        _, pending = await asyncio.wait(set(self._background_tasks), timeout=grace)

        if pending:
            self._logger.warning("abandoning_pending_deliveries", count=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)


# Global dispatcher instance
_dispatcher: WebhookDispatcher | None = None


def get_webhook_dispatcher() -> WebhookDispatcher:
    """Get the global webhook dispatcher.

    Returns:
        Singleton WebhookDispatcher.
    """
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = WebhookDispatcher()
    return _dispatcher


def set_webhook_dispatcher(dispatcher: WebhookDispatcher | None) -> None:
    """Set the global webhook dispatcher.

    Useful for testing.

    Args:
        dispatcher: WebhookDispatcher instance.
    """
    global _dispatcher
    _dispatcher = dispatcher
