"""Client configuration loaded from LIBMIRROR_* environment variables."""

from __future__ import annotations

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class LibrarySettings(BaseSettings):
    """Library client settings.

    All fields are read from environment variables with the ``LIBMIRROR_``
    prefix.  For example, ``LIBMIRROR_LOG_LEVEL=DEBUG`` maps to ``log_level``.

    GitHub credentials are **not** managed here -- the remote backend owns
    authentication against GitHub; this client only presents a bearer token
    to the backend.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIBMIRROR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Backend ---------------------------------------------------------------
    backend_url: str = "http://localhost:8000"
    """Base URL of the library backend (RPC-style ``/api`` endpoints)."""

    auth_token: SecretStr | None = None
    """Bearer token presented to the backend.  Omitted when unset."""

    # -- Cache -----------------------------------------------------------------
    cache_ttl_seconds: float = 300.0
    """Validity window for cached catalog / collection snapshots (5 minutes)."""

    # -- Timeouts (seconds) ----------------------------------------------------
    read_timeout: float = 10.0
    """Listing workspaces, catalogs, collections, membership and resources."""

    write_timeout: float = 15.0
    """Collection create / update / delete and membership changes."""

    bulk_timeout: float = 30.0
    """Catalog deletion, project scans, publishing and pulling."""

    sync_timeout: float = 60.0
    """Full workspace catalog sync from GitHub."""

    # -- Helpers ---------------------------------------------------------------

    def auth_headers(self) -> dict[str, str]:
        """Return the Authorization header for the backend, if configured."""
        if self.auth_token is None:
            return {}
        return {"Authorization": f"Bearer {self.auth_token.get_secret_value()}"}


def get_settings() -> LibrarySettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> LibrarySettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return LibrarySettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
