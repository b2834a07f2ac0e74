from __future__ import annotations

from cafehoppr.client.base import CafeBackend
from cafehoppr.core.config import ConfigurationError, Settings


def get_backend(settings: Settings) -> CafeBackend:
    """Build the data backend selected by BACKEND (``api`` or ``sql``)."""
    kind = (settings.backend or "api").strip().lower()
    if kind == "api":
        from cafehoppr.client.api import ApiBackend

        return ApiBackend(settings.require_api_base_url(), timeout=settings.api_timeout_seconds)
    if kind == "sql":
        settings.require_database_url()
        # Imported lazily: the session module connects at import time.
        from cafehoppr.client.sql import SqlBackend

        return SqlBackend()
    raise ConfigurationError(f"Unknown BACKEND {settings.backend!r}; expected 'api' or 'sql'")
