"""HTTP API for webhook management."""

from gymhooks.api.app import create_app
from gymhooks.api.auth import require_admin

__all__ = ["create_app", "require_admin"]
