"""Tests for webhook registry module."""

import pytest

from gymhooks.errors import WebhookNotFoundError, WebhookValidationError
from gymhooks.webhooks.models import Webhook
from gymhooks.webhooks.registry import validate_events, validate_url


async def _create(registry, **overrides) -> Webhook:
    fields = {
        "name": "billing",
        "url": "https://example.test/hook",
        "events": ["payment.completed"],
    }
    fields.update(overrides)
    return await registry.create(**fields)


# ============================================================================
# Validation Tests
# ============================================================================


class TestValidation:
    """Tests for field validators."""

    @pytest.mark.parametrize(
        "url",
        ["https://example.test/hook", "http://localhost:8080/in", "  https://a.b/c  "],
    )
    def test_valid_urls(self, url):
        assert validate_url(url) == url.strip()

    @pytest.mark.parametrize(
        "url",
        ["not-a-valid-url", "/relative/path", "ftp://example.test/x", "", None, 42],
    )
    def test_invalid_urls(self, url):
        with pytest.raises(WebhookValidationError) as exc_info:
            validate_url(url)
        assert exc_info.value.field == "url"

    def test_events_deduplicated_in_order(self):
        assert validate_events(["b", "a", "b", " a "]) == ["b", "a"]

    @pytest.mark.parametrize("events", [[], "payment.completed", None, [""], [1]])
    def test_invalid_events(self, events):
        with pytest.raises(WebhookValidationError) as exc_info:
            validate_events(events)
        assert exc_info.value.field == "events"


# ============================================================================
# Create / Get / List Tests
# ============================================================================


class TestCreate:
    """Tests for webhook creation."""

    @pytest.mark.asyncio
    async def test_create_defaults(self, registry):
        """Test creating a webhook with required fields only."""
        webhook = await _create(registry)

        assert webhook.id.startswith("wh_")
        assert webhook.is_active is True
        assert webhook.secret is None
        assert webhook.retry_count is None
        assert webhook.last_triggered_at is None

        stored = await registry.get(webhook.id)
        assert stored == webhook

    @pytest.mark.asyncio
    async def test_create_all_fields(self, registry):
        webhook = await _create(
            registry,
            secret="s3cr3t",
            is_active=False,
            retry_count=2,
            events=["payment.completed", "payment.refunded"],
        )

        stored = await registry.get(webhook.id)
        assert stored.secret == "s3cr3t"
        assert stored.is_active is False
        assert stored.retry_count == 2
        assert stored.events == ["payment.completed", "payment.refunded"]

    @pytest.mark.asyncio
    async def test_empty_secret_stored_as_none(self, registry):
        webhook = await _create(registry, secret="")
        assert webhook.secret is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"url": "not-a-url"},
            {"events": []},
            {"name": "   "},
            {"retry_count": 0},
        ],
    )
    async def test_create_rejects_invalid(self, registry, overrides):
        with pytest.raises(WebhookValidationError):
            await _create(registry, **overrides)

        assert await registry.list_all() == []

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, registry):
        assert await registry.get("wh_missing") is None

    @pytest.mark.asyncio
    async def test_require_missing_raises(self, registry):
        with pytest.raises(WebhookNotFoundError):
            await registry.require("wh_missing")

    @pytest.mark.asyncio
    async def test_list_newest_first(self, registry):
        first = await _create(registry, name="first")
        second = await _create(registry, name="second")
        third = await _create(registry, name="third")

        ids = [w.id for w in await registry.list_all()]

        assert ids == [third.id, second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_active_for_event(self, registry):
        matching = await _create(registry, events=["payment.completed", "member.created"])
        await _create(registry, events=["member.created"])
        await _create(registry, is_active=False)

        result = await registry.list_active_for_event("payment.completed")

        assert [w.id for w in result] == [matching.id]


# ============================================================================
# Update Tests
# ============================================================================


class TestUpdate:
    """Tests for partial updates."""

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, registry):
        webhook = await _create(registry, secret="s3cr3t", retry_count=5)

        updated = await registry.update(webhook.id, name="renamed", is_active=False)

        assert updated.name == "renamed"
        assert updated.is_active is False
        assert updated.url == webhook.url
        assert updated.secret == "s3cr3t"
        assert updated.retry_count == 5
        assert updated.updated_at >= webhook.updated_at

    @pytest.mark.asyncio
    async def test_update_events_and_url(self, registry):
        webhook = await _create(registry)

        updated = await registry.update(
            webhook.id,
            url="https://other.test/hook",
            events=["class.booked"],
        )

        assert updated.url == "https://other.test/hook"
        assert updated.events == ["class.booked"]

    @pytest.mark.asyncio
    async def test_empty_secret_clears(self, registry):
        webhook = await _create(registry, secret="s3cr3t")

        updated = await registry.update(webhook.id, secret="")

        assert updated.secret is None

    @pytest.mark.asyncio
    async def test_none_retry_count_restores_default(self, registry):
        webhook = await _create(registry, retry_count=7)

        updated = await registry.update(webhook.id, retry_count=None)

        assert updated.retry_count is None
        assert updated.max_attempts(3) == 3

    @pytest.mark.asyncio
    async def test_invalid_url_rejected(self, registry):
        webhook = await _create(registry)

        with pytest.raises(WebhookValidationError):
            await registry.update(webhook.id, url="nope")

        assert (await registry.get(webhook.id)).url == webhook.url

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, registry):
        webhook = await _create(registry)

        with pytest.raises(WebhookValidationError):
            await registry.update(webhook.id, last_success_at="2026-01-01")

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, registry):
        with pytest.raises(WebhookNotFoundError):
            await registry.update("wh_missing", name="x")


# ============================================================================
# Delete / Health Tests
# ============================================================================


class TestDeleteAndHealth:
    """Tests for deletion and health timestamps."""

    @pytest.mark.asyncio
    async def test_delete(self, registry):
        webhook = await _create(registry)

        await registry.delete(webhook.id)

        assert await registry.get(webhook.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, registry):
        with pytest.raises(WebhookNotFoundError):
            await registry.delete("wh_missing")

    @pytest.mark.asyncio
    async def test_mark_success(self, registry):
        webhook = await _create(registry)

        assert await registry.mark_delivery(webhook.id, success=True) is True

        stored = await registry.get(webhook.id)
        assert stored.last_triggered_at is not None
        assert stored.last_success_at is not None
        assert stored.last_failure_at is None

    @pytest.mark.asyncio
    async def test_mark_failure(self, registry):
        webhook = await _create(registry)

        await registry.mark_delivery(webhook.id, success=False)

        stored = await registry.get(webhook.id)
        assert stored.last_triggered_at is not None
        assert stored.last_failure_at is not None
        assert stored.last_success_at is None

    @pytest.mark.asyncio
    async def test_mark_deleted_webhook(self, registry):
        assert await registry.mark_delivery("wh_missing", success=True) is False
