"""Application configuration. Loads .env, then overrides from settings.json."""

import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Find the project root (where .env lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# Runtime settings file for in-app configuration
_SETTINGS_FILE = _PROJECT_ROOT / "data" / "settings.json"


def _load_settings() -> dict:
    """Load saved runtime settings from JSON file."""
    if _SETTINGS_FILE.exists():
        try:
            return json.loads(_SETTINGS_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def _save_settings(settings: dict):
    """Persist runtime settings to JSON file."""
    _SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    _SETTINGS_FILE.write_text(
        json.dumps(settings, indent=2), encoding="utf-8"
    )


# Load saved settings once at import time
_runtime = _load_settings()


class Config:
    """Central configuration: .env defaults, settings.json overrides."""

    # Paths
    PROJECT_ROOT: Path = _PROJECT_ROOT
    DATABASE_PATH: Path = Path(
        os.getenv("DATABASE_PATH", str(_PROJECT_ROOT / "data" / "field_stock.db"))
    )

    # Remote sheet service (settings.json overrides .env)
    REMOTE_URL: str = _runtime.get(
        "remote_url",
        os.getenv("REMOTE_URL", ""),
    )
    REMOTE_TIMEOUT_SECONDS: float = float(_runtime.get(
        "remote_timeout_seconds",
        os.getenv("REMOTE_TIMEOUT_SECONDS", "30"),
    ))

    # Static-data cache
    CACHE_TTL_HOURS: float = float(_runtime.get(
        "cache_ttl_hours",
        os.getenv("CACHE_TTL_HOURS", "24"),
    ))

    # Quantity polling
    SYNC_INTERVAL_SECONDS: int = int(_runtime.get(
        "sync_interval_seconds",
        os.getenv("SYNC_INTERVAL_SECONDS", "60"),
    ))
    SYNC_FAILURE_THRESHOLD: int = int(_runtime.get(
        "sync_failure_threshold",
        os.getenv("SYNC_FAILURE_THRESHOLD", "3"),
    ))
    SYNC_COOLDOWN_SECONDS: int = int(_runtime.get(
        "sync_cooldown_seconds",
        os.getenv("SYNC_COOLDOWN_SECONDS", "300"),
    ))
    SYNC_RATE_LIMIT_PENALTY: int = int(_runtime.get(
        "sync_rate_limit_penalty",
        os.getenv("SYNC_RATE_LIMIT_PENALTY", "2"),
    ))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def cache_ttl_ms(cls) -> int:
        return int(cls.CACHE_TTL_HOURS * 60 * 60 * 1000)

    @classmethod
    def update_remote_settings(cls, url: str, timeout: float):
        """Update the remote endpoint at runtime and persist to disk."""
        cls.REMOTE_URL = url
        cls.REMOTE_TIMEOUT_SECONDS = timeout

        settings = _load_settings()
        settings["remote_url"] = url
        settings["remote_timeout_seconds"] = timeout
        _save_settings(settings)

    @classmethod
    def update_sync_settings(cls, interval: int, threshold: int,
                             cooldown: int):
        """Update polling interval and backoff policy, then persist."""
        cls.SYNC_INTERVAL_SECONDS = max(interval, 10)
        cls.SYNC_FAILURE_THRESHOLD = max(threshold, 1)
        cls.SYNC_COOLDOWN_SECONDS = max(cooldown, 0)

        settings = _load_settings()
        settings["sync_interval_seconds"] = cls.SYNC_INTERVAL_SECONDS
        settings["sync_failure_threshold"] = cls.SYNC_FAILURE_THRESHOLD
        settings["sync_cooldown_seconds"] = cls.SYNC_COOLDOWN_SECONDS
        _save_settings(settings)

    @classmethod
    def update_cache_ttl(cls, hours: float):
        """Update the static-data cache lifetime and persist."""
        cls.CACHE_TTL_HOURS = hours
        settings = _load_settings()
        settings["cache_ttl_hours"] = hours
        _save_settings(settings)
