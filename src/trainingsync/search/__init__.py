"""Search index filter generation."""

from .strategies import (
    DayBeforeReminderStrategy,
    FilterGeneratingStrategy,
    SearchParameters,
    format_round_trip,
    generate_day_before_filter,
)

__all__ = [
    "DayBeforeReminderStrategy",
    "FilterGeneratingStrategy",
    "SearchParameters",
    "format_round_trip",
    "generate_day_before_filter",
]
