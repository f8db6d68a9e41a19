"""Webhook management API endpoints.

Provides REST API for managing webhook subscriptions, viewing delivery
history and sending test deliveries. Every route requires the admin key.
"""

from typing import Any, Generic, TypeVar

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from gymhooks.api.auth import require_admin
from gymhooks.webhooks.dispatcher import get_webhook_dispatcher
from gymhooks.webhooks.ledger import DEFAULT_PAGE_SIZE, get_delivery_ledger
from gymhooks.webhooks.models import (
    DeliveryHistoryPage,
    Webhook,
    WebhookEvent,
    WebhookEventStatus,
)
from gymhooks.webhooks.registry import get_webhook_registry

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/webhooks",
    tags=["Webhooks"],
    dependencies=[Depends(require_admin)],
)

T = TypeVar("T")

MAX_PAGE_SIZE = 100


# ============================================================================
# Request Models
# ============================================================================


class WebhookCreateRequest(BaseModel):
    """Request to create a new webhook."""

    name: str = Field(..., description="Human-readable label")
    url: str = Field(..., description="Absolute http(s) endpoint URL")
    events: list[str] = Field(..., description="Event types to subscribe to")
    secret: str | None = Field(
        default=None,
        description="Shared secret for HMAC signatures",
    )
    is_active: bool = Field(default=True, description="Whether webhook receives events")
    retry_count: int | None = Field(
        default=None,
        description="Maximum attempts per event (server default if null)",
        ge=1,
    )


class WebhookUpdateRequest(BaseModel):
    """Request to update a webhook. Only fields present are changed."""

    name: str | None = Field(default=None, description="New label")
    url: str | None = Field(default=None, description="New URL")
    events: list[str] | None = Field(default=None, description="New event subscriptions")
    secret: str | None = Field(default=None, description="New secret (empty clears it)")
    is_active: bool | None = Field(default=None, description="Enable/disable webhook")
    retry_count: int | None = Field(default=None, description="New max attempts", ge=1)


# ============================================================================
# Response Models
# ============================================================================


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every webhook endpoint."""

    success: bool
    message: str
    data: T | None = None


class WebhookResponse(BaseModel):
    """Webhook details response."""

    id: str
    name: str
    url: str
    events: list[str]
    secret: str | None
    retry_count: int | None
    is_active: bool
    last_triggered_at: str | None
    last_success_at: str | None
    last_failure_at: str | None
    created_at: str
    updated_at: str
    delivery_count: int

    @classmethod
    def from_webhook(cls, webhook: Webhook, delivery_count: int = 0) -> "WebhookResponse":
        """Create response from Webhook model."""
        return cls(
            id=webhook.id,
            name=webhook.name,
            url=webhook.url,
            events=webhook.events,
            secret=webhook.secret,
            retry_count=webhook.retry_count,
            is_active=webhook.is_active,
            last_triggered_at=webhook.last_triggered_at.isoformat() if webhook.last_triggered_at else None,
            last_success_at=webhook.last_success_at.isoformat() if webhook.last_success_at else None,
            last_failure_at=webhook.last_failure_at.isoformat() if webhook.last_failure_at else None,
            created_at=webhook.created_at.isoformat(),
            updated_at=webhook.updated_at.isoformat(),
            delivery_count=delivery_count,
        )


class WebhookEventResponse(BaseModel):
    """Delivery record response."""

    id: str
    webhook_id: str
    event_type: str
    payload: Any
    status: WebhookEventStatus
    response_code: int | None
    response_body: str | None
    attempts: int
    created_at: str

    @classmethod
    def from_event(cls, event: WebhookEvent) -> "WebhookEventResponse":
        """Create response from WebhookEvent model."""
        return cls(
            id=event.id,
            webhook_id=event.webhook_id,
            event_type=event.event_type,
            payload=event.payload_json(),
            status=event.status,
            response_code=event.response_code,
            response_body=event.response_body,
            attempts=event.attempts,
            created_at=event.created_at.isoformat(),
        )


class WebhookEventsPage(BaseModel):
    """Paginated delivery history."""

    model_config = ConfigDict(populate_by_name=True)

    events: list[WebhookEventResponse]
    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")

    @classmethod
    def from_page(cls, page: DeliveryHistoryPage) -> "WebhookEventsPage":
        """Create response from a ledger page."""
        return cls(
            events=[WebhookEventResponse.from_event(e) for e in page.events],
            total=page.total,
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
        )


class TestWebhookAck(BaseModel):
    """Acknowledgement returned by the test endpoint."""

    success: bool
    message: str


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=ApiResponse[list[WebhookResponse]],
)
async def list_webhooks() -> ApiResponse[list[WebhookResponse]]:
    """List all webhooks, newest first, with their delivery counts."""
    webhooks = await get_webhook_registry().list_all()
    counts = await get_delivery_ledger().counts_by_webhook()

    return ApiResponse(
        success=True,
        message="Webhooks retrieved successfully",
        data=[WebhookResponse.from_webhook(w, counts.get(w.id, 0)) for w in webhooks],
    )


@router.get(
    "/{webhook_id}",
    response_model=ApiResponse[WebhookResponse],
    responses={
        404: {"description": "Webhook not found"},
    },
)
async def get_webhook(webhook_id: str) -> ApiResponse[WebhookResponse]:
    """Get webhook details by ID."""
    webhook = await get_webhook_registry().require(webhook_id)
    count = await get_delivery_ledger().count_for(webhook_id)

    return ApiResponse(
        success=True,
        message="Webhook retrieved successfully",
        data=WebhookResponse.from_webhook(webhook, count),
    )


@router.post(
    "",
    response_model=ApiResponse[WebhookResponse],
    responses={
        201: {"description": "Webhook created"},
        400: {"description": "Invalid request"},
    },
    status_code=201,
)
async def create_webhook(request: WebhookCreateRequest) -> ApiResponse[WebhookResponse]:
    """Register a new webhook."""
    webhook = await get_webhook_registry().create(
        name=request.name,
        url=request.url,
        events=request.events,
        secret=request.secret,
        is_active=request.is_active,
        retry_count=request.retry_count,
    )

    logger.info("webhook_created", webhook_id=webhook.id, url=webhook.url)

    return ApiResponse(
        success=True,
        message="Webhook created successfully",
        data=WebhookResponse.from_webhook(webhook),
    )


@router.put(
    "/{webhook_id}",
    response_model=ApiResponse[WebhookResponse],
    responses={
        400: {"description": "Invalid request"},
        404: {"description": "Webhook not found"},
    },
)
async def update_webhook(
    webhook_id: str,
    request: WebhookUpdateRequest,
) -> ApiResponse[WebhookResponse]:
    """Update any subset of a webhook's fields."""
    webhook = await get_webhook_registry().update(
        webhook_id,
        **request.model_dump(exclude_unset=True),
    )
    count = await get_delivery_ledger().count_for(webhook_id)

    return ApiResponse(
        success=True,
        message="Webhook updated successfully",
        data=WebhookResponse.from_webhook(webhook, count),
    )


@router.delete(
    "/{webhook_id}",
    response_model=ApiResponse[None],
    responses={
        404: {"description": "Webhook not found"},
    },
)
async def delete_webhook(webhook_id: str) -> ApiResponse[None]:
    """Delete a webhook. Its delivery history is kept."""
    await get_webhook_registry().delete(webhook_id)

    return ApiResponse(success=True, message="Webhook deleted successfully", data=None)


@router.get(
    "/{webhook_id}/events",
    response_model=ApiResponse[WebhookEventsPage],
)
async def list_webhook_events(
    webhook_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> ApiResponse[WebhookEventsPage]:
    """List delivery attempts for a webhook, newest first.

    History is served for deleted webhooks too, since it is retained.
    """
    history = await get_delivery_ledger().list_history(webhook_id, page=page, limit=limit)

    return ApiResponse(
        success=True,
        message="Webhook events retrieved successfully",
        data=WebhookEventsPage.from_page(history),
    )


@router.post(
    "/{webhook_id}/test",
    response_model=ApiResponse[TestWebhookAck],
    responses={
        400: {"description": "Webhook is not active"},
        404: {"description": "Webhook not found"},
    },
)
async def test_webhook(webhook_id: str) -> ApiResponse[TestWebhookAck]:
    """Send a test event to a webhook.

    Returns as soon as the delivery is started; its outcome shows up in
    the webhook's event history.
    """
    await get_webhook_dispatcher().send_test(webhook_id)

    logger.info("webhook_tested", webhook_id=webhook_id)

    return ApiResponse(
        success=True,
        message="Test webhook triggered",
        data=TestWebhookAck(success=True, message="Webhook test event has been sent"),
    )
