"""Domain-level validation rules for room allocation search."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AllocationConfig:
    cleanup_buffer_minutes: int = 15
    slot_interval_minutes: int = 15
    min_search_window_minutes: int = 60
    search_padding_minutes: int = 60
    max_alternatives: int = 10
    auto_release_grace_minutes: int = 10


def validate_allocation_config(config: AllocationConfig) -> None:
    if config.cleanup_buffer_minutes < 0:
        raise ValueError("cleanup_buffer_minutes must be >= 0")
    if config.slot_interval_minutes <= 0:
        raise ValueError("slot_interval_minutes must be > 0")
    if config.min_search_window_minutes < 0:
        raise ValueError("min_search_window_minutes must be >= 0")
    if config.search_padding_minutes < 0:
        raise ValueError("search_padding_minutes must be >= 0")
    if config.max_alternatives <= 0:
        raise ValueError("max_alternatives must be > 0")
    if config.auto_release_grace_minutes < 0:
        raise ValueError("auto_release_grace_minutes must be >= 0")
