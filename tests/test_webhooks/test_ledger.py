"""Tests for the delivery history ledger."""

import pytest

from gymhooks.errors import LedgerWriteError
from gymhooks.webhooks.ledger import MAX_RESPONSE_BODY_CHARS, DeliveryLedger
from gymhooks.webhooks.models import WebhookEventStatus
from gymhooks.webhooks.storage import WebhookDatabase


async def _record(ledger, webhook_id="wh_1", attempts=1, **overrides):
    fields = {
        "webhook_id": webhook_id,
        "event_type": "payment.completed",
        "payload": '{"event":"payment.completed"}',
        "status": WebhookEventStatus.SUCCESS,
        "attempts": attempts,
        "response_code": 200,
        "response_body": "ok",
    }
    fields.update(overrides)
    return await ledger.record(**fields)


class TestRecord:
    """Tests for appending records."""

    @pytest.mark.asyncio
    async def test_record_roundtrip(self, ledger):
        """Test a stored record comes back unchanged."""
        event = await _record(
            ledger,
            status=WebhookEventStatus.PENDING,
            response_code=None,
            response_body="Connection error: refused",
            attempts=2,
        )

        page = await ledger.list_history("wh_1")

        assert page.events == [event]
        assert page.events[0].id.startswith("dlv_")

    @pytest.mark.asyncio
    async def test_response_body_truncated(self, ledger):
        event = await _record(ledger, response_body="x" * 5000)

        assert len(event.response_body) == MAX_RESPONSE_BODY_CHARS

    @pytest.mark.asyncio
    async def test_write_failure_raises_ledger_error(self, tmp_path):
        """Test an unwritable database surfaces as LedgerWriteError."""
        # A directory cannot be opened as a SQLite file
        broken = DeliveryLedger(WebhookDatabase(db_path=tmp_path))

        with pytest.raises(LedgerWriteError) as exc_info:
            await _record(broken, attempts=3)

        assert exc_info.value.attempt == 3


class TestHistory:
    """Tests for paginated history."""

    @pytest.mark.asyncio
    async def test_pagination(self, ledger):
        """Test page slicing, totals and page count."""
        for i in range(1, 26):
            await _record(ledger, attempts=i)

        first = await ledger.list_history("wh_1", page=1, limit=10)
        third = await ledger.list_history("wh_1", page=3, limit=10)
        beyond = await ledger.list_history("wh_1", page=4, limit=10)

        assert first.total == 25
        assert first.total_pages == 3
        assert [e.attempts for e in first.events] == list(range(25, 15, -1))
        assert [e.attempts for e in third.events] == [5, 4, 3, 2, 1]
        assert beyond.events == []
        assert beyond.total == 25

    @pytest.mark.asyncio
    async def test_filtered_by_webhook(self, ledger):
        await _record(ledger, webhook_id="wh_1")
        await _record(ledger, webhook_id="wh_2")
        await _record(ledger, webhook_id="wh_2")

        page = await ledger.list_history("wh_2")

        assert page.total == 2
        assert all(e.webhook_id == "wh_2" for e in page.events)

    @pytest.mark.asyncio
    async def test_empty_history(self, ledger):
        page = await ledger.list_history("wh_none")

        assert page.events == []
        assert page.total == 0
        assert page.total_pages == 0

    @pytest.mark.asyncio
    async def test_history_outlives_webhook(self, registry, ledger):
        """Test deleting a webhook keeps its records."""
        webhook = await registry.create(
            name="billing",
            url="https://example.test/hook",
            events=["payment.completed"],
        )
        await _record(ledger, webhook_id=webhook.id)

        await registry.delete(webhook.id)

        page = await ledger.list_history(webhook.id)
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_counts(self, ledger):
        await _record(ledger, webhook_id="wh_1")
        await _record(ledger, webhook_id="wh_2")
        await _record(ledger, webhook_id="wh_2")

        assert await ledger.count_for("wh_2") == 2
        assert await ledger.count_for("wh_none") == 0
        assert await ledger.counts_by_webhook() == {"wh_1": 1, "wh_2": 2}
