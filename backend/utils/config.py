"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    allocation_cleanup_buffer_minutes: int
    allocation_slot_interval_minutes: int
    allocation_min_search_window_minutes: int
    allocation_search_padding_minutes: int
    allocation_max_alternatives: int
    auto_release_grace_minutes: int
    auto_release_interval_seconds: int
    seed_demo_data: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; call `cache_clear()` to reload."""
    return Settings(
        app_name=os.getenv("APP_NAME", "Meeting Room Allocation Service"),
        app_version=os.getenv("APP_VERSION", "1.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(os.getenv("DATABASE_PATH", "data/meeting_rooms.db")),
        allocation_cleanup_buffer_minutes=_env_int("ALLOCATION_CLEANUP_BUFFER_MINUTES", 15),
        allocation_slot_interval_minutes=_env_int("ALLOCATION_SLOT_INTERVAL_MINUTES", 15),
        allocation_min_search_window_minutes=_env_int(
            "ALLOCATION_MIN_SEARCH_WINDOW_MINUTES", 60
        ),
        allocation_search_padding_minutes=_env_int("ALLOCATION_SEARCH_PADDING_MINUTES", 60),
        allocation_max_alternatives=_env_int("ALLOCATION_MAX_ALTERNATIVES", 10),
        auto_release_grace_minutes=_env_int("AUTO_RELEASE_GRACE_MINUTES", 10),
        auto_release_interval_seconds=_env_int("AUTO_RELEASE_INTERVAL_SECONDS", 60),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
    )
