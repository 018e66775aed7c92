"""Calendar synchronization for the employee training app."""

from .errors import (
    AuthenticationError,
    BackendTransportError,
    DirectoryLookupError,
    EventPreconditionError,
    FailureKind,
    SyncError,
    SyncResult,
)
from .search import generate_day_before_filter
from .services import CalendarEventSynchronizer

__all__ = [
    "CalendarEventSynchronizer",
    "generate_day_before_filter",
    # Errors
    "SyncError",
    "DirectoryLookupError",
    "AuthenticationError",
    "BackendTransportError",
    "EventPreconditionError",
    "FailureKind",
    "SyncResult",
]
