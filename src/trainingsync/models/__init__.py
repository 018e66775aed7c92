"""Data types for calendar synchronization."""

from .calendar import (
    Attendee,
    AttendeeType,
    BackendRoute,
    CalendarEvent,
    DateTimeTimeZone,
    PatternedRecurrence,
    RecurrencePattern,
    RecurrenceRange,
)
from .directory import DirectoryProfile
from .events import EventAudience, EventRecord, EventStatus, EventType

__all__ = [
    # Event records
    "EventAudience",
    "EventRecord",
    "EventStatus",
    "EventType",
    # Calendar events
    "Attendee",
    "AttendeeType",
    "BackendRoute",
    "CalendarEvent",
    "DateTimeTimeZone",
    "PatternedRecurrence",
    "RecurrencePattern",
    "RecurrenceRange",
    # Directory
    "DirectoryProfile",
]
