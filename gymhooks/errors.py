"""Error types for the webhook subsystem.

Exception Hierarchy:
    WebhookError (base)
    ├── WebhookValidationError - Bad subscription input (HTTP 400)
    ├── WebhookNotFoundError - Unknown subscription id (HTTP 404)
    ├── WebhookInactiveError - Operation needs an active subscription (HTTP 400)
    └── LedgerWriteError - Delivery record could not be persisted

Delivery failures (timeouts, refused connections, non-2xx responses) are not
exceptions at this level: they are captured as attempt outcomes and written
to the delivery history.
"""

from typing import Any


class WebhookError(Exception):
    """Base exception for all webhook subsystem errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error details.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class WebhookValidationError(WebhookError):
    """Raised when subscription fields fail validation."""

    status_code = 400

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class WebhookNotFoundError(WebhookError):
    """Raised when a webhook id does not exist."""

    status_code = 404

    def __init__(self, webhook_id: str) -> None:
        super().__init__("Webhook not found", details={"webhook_id": webhook_id})
        self.webhook_id = webhook_id


class WebhookInactiveError(WebhookError):
    """Raised when an inactive webhook is asked to deliver."""

    status_code = 400

    def __init__(self, webhook_id: str) -> None:
        super().__init__("Webhook is not active", details={"webhook_id": webhook_id})
        self.webhook_id = webhook_id


class LedgerWriteError(WebhookError):
    """Raised when a delivery record cannot be written."""

    def __init__(self, webhook_id: str, attempt: int, cause: Exception) -> None:
        super().__init__(
            f"Failed to record delivery attempt {attempt}: {cause}",
            details={"webhook_id": webhook_id, "attempt": attempt},
        )
        self.webhook_id = webhook_id
        self.attempt = attempt
