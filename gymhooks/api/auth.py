"""Admin authentication for the webhook management API."""

import hmac

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from gymhooks.config import settings

ADMIN_KEY_HEADER = "X-Admin-Api-Key"

admin_key_header = APIKeyHeader(name=ADMIN_KEY_HEADER, auto_error=False)


def require_admin(admin_key: str | None = Security(admin_key_header)) -> str:
    """Reject requests without the configured admin key.

    With no ADMIN_API_KEY configured every request is rejected.
    """
    expected = settings.ADMIN_API_KEY
    if not admin_key or not expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials",
        )
    if not hmac.compare_digest(admin_key.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials",
        )
    return "admin"
