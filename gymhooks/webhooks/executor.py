"""Single-attempt webhook delivery over HTTP."""

from dataclasses import dataclass

import httpx
import structlog

from gymhooks.config import settings
from gymhooks.webhooks.security import build_delivery_headers

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one HTTP attempt.

    Attributes:
        status_code: HTTP status, or None if no response was received.
        response_body: Response text, or error text for transport failures.
        error: Failure description, None on success.
    """

    status_code: int | None
    response_body: str | None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """Whether the attempt got a 2xx response."""
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
        )


class DeliveryExecutor:
    """Performs one POST of a serialized payload to a webhook endpoint.

    Redirects are not followed, so only a 2xx response counts as success.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            timeout_seconds: Per-attempt timeout (defaults to settings).
            transport: Optional httpx transport, e.g. a MockTransport in tests.
        """
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.WEBHOOK_DELIVERY_TIMEOUT_SECONDS
        )
        self._transport = transport
        self._logger = logger.bind(component="delivery_executor")

    @property
    def timeout_seconds(self) -> float:
        """Per-attempt timeout in seconds."""
        return self._timeout

    async def execute(
        self,
        url: str,
        body: str,
        *,
        event_type: str,
        secret: str | None = None,
    ) -> AttemptOutcome:
        """Make a single delivery attempt.

        Args:
            url: Endpoint URL.
            body: Exact JSON text to send (and sign).
            event_type: Event name for the event header.
            secret: Webhook secret; adds a signature header when set.

        Returns:
            Outcome of the attempt. Transport errors are returned, not raised.
        """
        content = body.encode("utf-8")
        # httpx encodes str header values as ASCII; event types may not be
        headers = {
            name: value.encode("utf-8")
            for name, value in build_delivery_headers(content, event_type, secret).items()
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=False,
            ) as client:
                response = await client.post(url, content=content, headers=headers)

        except httpx.TimeoutException:
            self._logger.warning("delivery_timeout", url=url, timeout=self._timeout)
            message = f"Request timeout after {self._timeout:g}s"
            return AttemptOutcome(status_code=None, response_body=message, error=message)

        except httpx.TransportError as e:
            self._logger.warning("delivery_connection_error", url=url, error=str(e))
            message = f"Connection error: {str(e) or type(e).__name__}"
            return AttemptOutcome(status_code=None, response_body=message, error=message)

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._logger.warning("delivery_request_error", url=url, error=str(e))
            message = str(e) or type(e).__name__
            return AttemptOutcome(status_code=None, response_body=message, error=message)

        if response.is_success:
            return AttemptOutcome(
                status_code=response.status_code,
                response_body=response.text,
            )

        self._logger.warning(
            "delivery_non_success_response",
            url=url,
            status_code=response.status_code,
        )
        return AttemptOutcome(
            status_code=response.status_code,
            response_body=response.text,
            error=f"HTTP {response.status_code}",
        )
