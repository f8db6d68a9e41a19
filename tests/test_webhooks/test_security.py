"""Tests for webhook security module."""

import hashlib
import hmac
from datetime import UTC, datetime

import pytest

from gymhooks.webhooks.security import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    build_delivery_headers,
    sign_payload,
    verify_signature,
)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def sample_body():
    """Sample serialized webhook body."""
    return '{"event":"payment.completed","timestamp":"2026-01-01T00:00:00+00:00","data":{"amount":500000}}'


@pytest.fixture
def sample_secret():
    """Sample webhook secret."""
    return "s3cr3t"


# ============================================================================
# sign_payload Tests
# ============================================================================


class TestSignPayload:
    """Tests for sign_payload function."""

    def test_matches_hmac_sha256(self, sample_body, sample_secret):
        """Test signature is HMAC-SHA256 of the exact body bytes."""
        expected = hmac.new(
            sample_secret.encode(), sample_body.encode(), hashlib.sha256
        ).hexdigest()

        assert sign_payload(sample_body, sample_secret) == expected

    def test_lowercase_hex(self, sample_body, sample_secret):
        """Test signature is 64 lowercase hex characters."""
        signature = sign_payload(sample_body, sample_secret)

        assert len(signature) == 64
        assert signature == signature.lower()
        int(signature, 16)

    def test_bytes_and_str_agree(self, sample_body, sample_secret):
        """Test str bodies are signed as their UTF-8 bytes."""
        assert sign_payload(sample_body, sample_secret) == sign_payload(
            sample_body.encode("utf-8"), sample_secret
        )

    def test_different_secrets_differ(self, sample_body):
        """Test that different secrets produce different signatures."""
        assert sign_payload(sample_body, "secret-a") != sign_payload(sample_body, "secret-b")

    def test_one_byte_change_invalidates(self, sample_body, sample_secret):
        """Test tamper detection on a single changed byte."""
        signature = sign_payload(sample_body, sample_secret)
        tampered = sample_body.replace("500000", "500001")

        assert verify_signature(sample_body, signature, sample_secret) is True
        assert verify_signature(tampered, signature, sample_secret) is False


# ============================================================================
# verify_signature Tests
# ============================================================================


class TestVerifySignature:
    """Tests for verify_signature function."""

    def test_valid(self, sample_body, sample_secret):
        signature = sign_payload(sample_body, sample_secret)
        assert verify_signature(sample_body, signature, sample_secret) is True

    def test_uppercase_signature_accepted(self, sample_body, sample_secret):
        signature = sign_payload(sample_body, sample_secret).upper()
        assert verify_signature(sample_body, signature, sample_secret) is True

    def test_wrong_secret(self, sample_body, sample_secret):
        signature = sign_payload(sample_body, sample_secret)
        assert verify_signature(sample_body, signature, "other") is False

    def test_garbage_signature(self, sample_body, sample_secret):
        assert verify_signature(sample_body, "not-a-signature", sample_secret) is False


# ============================================================================
# build_delivery_headers Tests
# ============================================================================


class TestBuildDeliveryHeaders:
    """Tests for delivery header construction."""

    def test_signed_headers(self, sample_body, sample_secret):
        """Test headers include signature when a secret is set."""
        headers = build_delivery_headers(sample_body, "payment.completed", sample_secret)

        assert headers["Content-Type"] == "application/json"
        assert headers[EVENT_HEADER] == "payment.completed"
        assert headers[SIGNATURE_HEADER] == sign_payload(sample_body, sample_secret)

    def test_unsigned_headers(self, sample_body):
        """Test no signature header without a secret."""
        headers = build_delivery_headers(sample_body, "payment.completed", None)

        assert SIGNATURE_HEADER not in headers
        assert headers[EVENT_HEADER] == "payment.completed"

    def test_empty_secret_is_unsigned(self, sample_body):
        headers = build_delivery_headers(sample_body, "payment.completed", "")

        assert SIGNATURE_HEADER not in headers

    def test_timestamp_is_iso8601(self, sample_body):
        """Test timestamp header parses as ISO-8601."""
        fixed = datetime(2026, 3, 1, 12, 30, tzinfo=UTC)
        headers = build_delivery_headers(sample_body, "x", None, timestamp=fixed)

        assert headers[TIMESTAMP_HEADER] == "2026-03-01T12:30:00+00:00"
        assert datetime.fromisoformat(
            build_delivery_headers(sample_body, "x", None)[TIMESTAMP_HEADER]
        ).tzinfo is not None
