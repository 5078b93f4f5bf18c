"""Centralised settings for the content fetcher.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).

Numeric values that are missing, unparsable or out of range fall back to
their defaults instead of raising.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _env_log_level(name: str, default: str) -> str:
    value = os.environ.get(name, "").strip().upper()
    return value if value in _LOG_LEVELS else default


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CONTENT_FETCHER_WORKSPACE", Path.home() / ".content_fetcher")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "content.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Content fetching
    # ------------------------------------------------------------------
    content_size_limit: int = field(
        default_factory=lambda: _env_int("CONTENT_SIZE_LIMIT", 5 * 1024 * 1024)
    )
    max_redirects: int = field(
        default_factory=lambda: _env_int("MAX_REDIRECTS", 5, minimum=0)
    )
    request_timeout: float = field(
        default_factory=lambda: _env_float("REQUEST_TIMEOUT", 30.0)
    )

    # ------------------------------------------------------------------
    # Refetch of stale URLs
    # ------------------------------------------------------------------
    refetch_interval_hours: int = field(
        default_factory=lambda: _env_int("CONTENT_REFETCH_INTERVAL_HOURS", 12)
    )
    refetch_check_interval_minutes: int = field(
        default_factory=lambda: _env_int("REFETCH_CHECK_INTERVAL_MINUTES", 30)
    )
    refetch_enabled: bool = field(
        default_factory=lambda: _env_bool("REFETCH_ENABLED", True)
    )

    # ------------------------------------------------------------------
    # HTTP server / logging
    # ------------------------------------------------------------------
    host: str = field(default_factory=lambda: os.environ.get("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("PORT", 3000))
    log_level: str = field(
        default_factory=lambda: _env_log_level("LOG_LEVEL", "INFO")
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from content_fetcher.config import settings
settings = Settings()
