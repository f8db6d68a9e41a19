"""Outbound webhook delivery.

This module provides:
- WebhookRegistry: Registration and management of webhook subscriptions
- DeliveryLedger: Append-only history of delivery attempts
- DeliveryExecutor: Single HTTP delivery attempts
- RetryScheduler: Attempt loop with exponential backoff
- WebhookDispatcher: Fan-out of domain events to subscribed webhooks
- HMAC signatures so receivers can verify deliveries
"""

from gymhooks.webhooks.dispatcher import (
    WebhookDispatcher,
    get_webhook_dispatcher,
    set_webhook_dispatcher,
)
from gymhooks.webhooks.events import TEST_EVENT_TYPE, build_envelope, serialize_payload
from gymhooks.webhooks.executor import AttemptOutcome, DeliveryExecutor
from gymhooks.webhooks.ledger import DeliveryLedger, get_delivery_ledger, set_delivery_ledger
from gymhooks.webhooks.models import (
    DeliveryHistoryPage,
    Webhook,
    WebhookEvent,
    WebhookEventStatus,
)
from gymhooks.webhooks.registry import (
    WebhookRegistry,
    get_webhook_registry,
    set_webhook_registry,
)
from gymhooks.webhooks.scheduler import DeliveryResult, RetryScheduler, backoff_delay
from gymhooks.webhooks.security import sign_payload, verify_signature
from gymhooks.webhooks.storage import (
    WebhookDatabase,
    get_webhook_database,
    set_webhook_database,
)

__all__ = [
    # Events
    "TEST_EVENT_TYPE",
    "build_envelope",
    "serialize_payload",
    # Models
    "DeliveryHistoryPage",
    "Webhook",
    "WebhookEvent",
    "WebhookEventStatus",
    # Storage
    "WebhookDatabase",
    "get_webhook_database",
    "set_webhook_database",
    # Registry
    "WebhookRegistry",
    "get_webhook_registry",
    "set_webhook_registry",
    # Ledger
    "DeliveryLedger",
    "get_delivery_ledger",
    "set_delivery_ledger",
    # Delivery
    "AttemptOutcome",
    "DeliveryExecutor",
    "DeliveryResult",
    "RetryScheduler",
    "backoff_delay",
    # Dispatcher
    "WebhookDispatcher",
    "get_webhook_dispatcher",
    "set_webhook_dispatcher",
    # Security
    "sign_payload",
    "verify_signature",
]
