"""Internal training event records."""

from datetime import date, datetime, time, timezone
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventAudience(IntEnum):
    """Who may see and register for an event."""

    NONE = 0
    PUBLIC = 1
    PRIVATE = 2


class EventType(IntEnum):
    """How an event is delivered."""

    NONE = 0
    IN_PERSON = 1
    TEAMS = 2
    LIVE_EVENT = 3


class EventStatus(IntEnum):
    """Lifecycle state of an event record."""

    NONE = 0
    DRAFT = 1
    ACTIVE = 2
    CANCELLED = 3
    COMPLETED = 4


class EventRecord(BaseModel):
    """A training event as stored by the event-management service.

    The record is owned by its producer and treated as read-only here; the
    only annotation this package makes is the backend event identifier,
    returned on a copy via :meth:`with_backend_event_id`.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(description="Internal event identifier")
    name: str = Field(description="Event name, used as the calendar subject")
    description: str = Field("", description="Plain-text event description")
    audience: EventAudience = Field(EventAudience.PUBLIC)
    type: EventType = Field(EventType.IN_PERSON)
    venue: Optional[str] = Field(None, description="Venue for in-person events")
    meeting_link: Optional[str] = Field(
        None, description="Externally supplied live event link"
    )
    start_date: datetime = Field(description="Start date and time in UTC")
    end_time: time = Field(description="Time of day at which each occurrence ends")
    end_date: Optional[date] = Field(
        None, description="Last day of a recurring event"
    )
    number_of_occurrences: int = Field(1, ge=0)
    is_auto_register: bool = False
    registered_attendees: Optional[str] = Field(
        None, description="Semicolon delimited registered attendee ids"
    )
    auto_registered_attendees: Optional[str] = Field(
        None, description="Semicolon delimited auto-registered attendee ids"
    )
    created_by: str = Field(description="Directory id of the event creator")
    graph_event_id: Optional[str] = Field(
        None, description="Identifier assigned by the calendar backend"
    )
    status: EventStatus = Field(EventStatus.DRAFT)
    registered_attendees_count: int = Field(0, ge=0)

    @field_validator("start_date")
    @classmethod
    def normalize_start_date(cls, v: datetime) -> datetime:
        """Store the start as an aware UTC value; naive input is taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def with_backend_event_id(self, backend_event_id: str) -> "EventRecord":
        """Return a copy annotated with the backend event identifier."""
        return self.model_copy(update={"graph_event_id": backend_event_id})
