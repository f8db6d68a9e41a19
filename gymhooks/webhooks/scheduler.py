"""Retry loop for one delivery (one event sent to one webhook).

Attempt ``n`` that fails is recorded as PENDING and followed by a wait of
``2**n`` backoff units, until the webhook's attempt budget is spent; the
last failed attempt is recorded as FAILED. The loop lives in the current
task only: if the process stops mid-backoff, the remaining attempts are
lost.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gymhooks.config import settings
from gymhooks.webhooks.executor import AttemptOutcome, DeliveryExecutor
from gymhooks.webhooks.ledger import DeliveryLedger
from gymhooks.webhooks.models import Webhook, WebhookEventStatus
from gymhooks.webhooks.registry import WebhookRegistry

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, unit_seconds: float = 1.0) -> float:
    """Delay before the attempt that follows ``attempt``.

    Args:
        attempt: 1-based number of the attempt that just failed.
        unit_seconds: Length of one backoff unit.

    Returns:
        ``2**attempt`` units, in seconds.
    """
    return unit_seconds * 2**attempt


class DeliveryAttemptError(Exception):
    """A non-final attempt failed and should be retried."""

    def __init__(self, outcome: AttemptOutcome, attempt: int) -> None:
        super().__init__(outcome.error or "delivery failed")
        self.outcome = outcome
        self.attempt = attempt


@dataclass(frozen=True)
class DeliveryResult:
    """Terminal result of a delivery pipeline."""

    webhook_id: str
    event_type: str
    status: WebhookEventStatus
    attempts: int
    response_code: int | None


class RetryScheduler:
    """Drives the attempt loop for single deliveries."""

    def __init__(
        self,
        executor: DeliveryExecutor,
        ledger: DeliveryLedger,
        registry: WebhookRegistry,
        *,
        default_retry_count: int | None = None,
        backoff_unit_seconds: float | None = None,
        sleep: SleepFn = asyncio.sleep,
        attempt_slots: asyncio.Semaphore | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            executor: Performs each HTTP attempt.
            ledger: Receives one record per attempt.
            registry: Receives health timestamps on terminal outcomes.
            default_retry_count: Attempts when a webhook sets none.
            backoff_unit_seconds: Length of one backoff unit.
            sleep: Awaitable sleep used between attempts.
            attempt_slots: Optional semaphore bounding concurrent HTTP attempts.
        """
        self._executor = executor
        self._ledger = ledger
        self._registry = registry
        self._default_retry_count = default_retry_count or settings.WEBHOOK_DEFAULT_RETRY_COUNT
        self._backoff_unit = (
            backoff_unit_seconds
            if backoff_unit_seconds is not None
            else settings.WEBHOOK_BACKOFF_UNIT_SECONDS
        )
        self._sleep = sleep
        self._attempt_slots = attempt_slots
        self._logger = logger.bind(component="retry_scheduler")

    def _log_retry(self, retry_state: RetryCallState) -> None:
        self._logger.debug(
            "scheduling_retry",
            delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            next_attempt=retry_state.attempt_number + 1,
        )

    async def deliver(self, webhook: Webhook, event_type: str, body: str) -> DeliveryResult:
        """Run the attempt loop until success or the budget is spent.

        Args:
            webhook: Target webhook snapshot (read once per pipeline).
            event_type: Event name.
            body: Exact JSON text to send on every attempt.

        Returns:
            Terminal delivery result.

        Raises:
            LedgerWriteError: If an attempt cannot be recorded.
        """
        max_attempts = webhook.max_attempts(self._default_retry_count)

        try:
            # 2**n units after attempt n: multiplier * 2**(n - 1) with multiplier = 2 units
            async for attempt_context in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=2 * self._backoff_unit, exp_base=2),
                retry=retry_if_exception_type(DeliveryAttemptError),
                sleep=self._sleep,
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt_context:
                    attempt = attempt_context.retry_state.attempt_number
                    outcome = await self._attempt(webhook, event_type, body, attempt)

                    if outcome.succeeded:
                        await self._ledger.record(
                            webhook_id=webhook.id,
                            event_type=event_type,
                            payload=body,
                            status=WebhookEventStatus.SUCCESS,
                            attempts=attempt,
                            response_code=outcome.status_code,
                            response_body=outcome.response_body,
                        )
                        await self._registry.mark_delivery(webhook.id, success=True)
                        self._logger.info(
                            "delivery_success",
                            webhook_id=webhook.id,
                            event_type=event_type,
                            attempt=attempt,
                            status_code=outcome.status_code,
                        )
                        return DeliveryResult(
                            webhook_id=webhook.id,
                            event_type=event_type,
                            status=WebhookEventStatus.SUCCESS,
                            attempts=attempt,
                            response_code=outcome.status_code,
                        )

                    is_final = attempt >= max_attempts
                    await self._ledger.record(
                        webhook_id=webhook.id,
                        event_type=event_type,
                        payload=body,
                        status=WebhookEventStatus.FAILED if is_final else WebhookEventStatus.PENDING,
                        attempts=attempt,
                        response_code=outcome.status_code,
                        response_body=outcome.response_body,
                    )
                    self._logger.warning(
                        "delivery_attempt_failed",
                        webhook_id=webhook.id,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        error=outcome.error,
                    )
                    raise DeliveryAttemptError(outcome, attempt)

        except DeliveryAttemptError as e:
            await self._registry.mark_delivery(webhook.id, success=False)
            self._logger.error(
                "delivery_failed_permanently",
                webhook_id=webhook.id,
                event_type=event_type,
                attempts=e.attempt,
            )
            return DeliveryResult(
                webhook_id=webhook.id,
                event_type=event_type,
                status=WebhookEventStatus.FAILED,
                attempts=e.attempt,
                response_code=e.outcome.status_code,
            )

    async def _attempt(
        self,
        webhook: Webhook,
        event_type: str,
        body: str,
        attempt: int,
    ) -> AttemptOutcome:
        self._logger.debug(
            "attempting_delivery",
            webhook_id=webhook.id,
            attempt=attempt,
            url=webhook.url,
        )
        if self._attempt_slots is None:
            return await self._executor.execute(
                webhook.url, body, event_type=event_type, secret=webhook.secret
            )
        async with self._attempt_slots:
            return await self._executor.execute(
                webhook.url, body, event_type=event_type, secret=webhook.secret
            )
