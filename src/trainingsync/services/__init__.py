"""Calendar synchronization services."""

from .attendees import AttendeeResolver, split_attendee_ids
from .mapper import EventMapper, attendees_required_on_create, require_event
from .routing import BackendSelector
from .synchronizer import CalendarEventSynchronizer

__all__ = [
    "AttendeeResolver",
    "BackendSelector",
    "CalendarEventSynchronizer",
    "EventMapper",
    "attendees_required_on_create",
    "require_event",
    "split_attendee_ids",
]
