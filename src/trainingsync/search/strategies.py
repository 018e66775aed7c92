"""Filter query strategies for the event search index."""

from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field

from trainingsync.models import EventStatus


def format_round_trip(value: datetime) -> str:
    """Render a UTC instant in round-trip form, e.g. 2024-05-02T00:00:00.0000000Z."""
    value = value.astimezone(timezone.utc)
    # Seven fractional digits: 100ns ticks
    return f"{value:%Y-%m-%dT%H:%M:%S}.{value.microsecond * 10:07d}Z"


def start_of_utc_day(value: datetime) -> datetime:
    """Midnight UTC of the day ``value`` falls on; naive values are UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return datetime.combine(
        value.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc
    )


class SearchParameters(BaseModel):
    """Inputs to a filter generating strategy."""

    now: Optional[datetime] = Field(
        None, description="Reference instant; the current time when omitted"
    )

    def reference_time(self) -> datetime:
        return self.now or datetime.now(timezone.utc)


class FilterGeneratingStrategy(ABC):
    """Produces an OData filter predicate for the event search index."""

    @abstractmethod
    def generate_filter_query(self, parameters: SearchParameters) -> str:
        """Build the filter predicate."""


class DayBeforeReminderStrategy(FilterGeneratingStrategy):
    """Selects active events with registrations starting tomorrow (UTC)."""

    def generate_filter_query(self, parameters: SearchParameters) -> str:
        today = start_of_utc_day(parameters.reference_time())
        start_date = today + timedelta(days=1)
        end_date = today + timedelta(days=2)

        return (
            f"Status eq {int(EventStatus.ACTIVE)} and "
            f"StartDate ge {format_round_trip(start_date)} and "
            f"StartDate le {format_round_trip(end_date)} and "
            "RegisteredAttendeesCount gt 0"
        )


def generate_day_before_filter(now: Optional[datetime] = None) -> str:
    """Filter selecting events that need a day-before reminder at ``now``."""
    return DayBeforeReminderStrategy().generate_filter_query(SearchParameters(now=now))
