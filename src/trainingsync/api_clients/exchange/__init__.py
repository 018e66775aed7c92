"""Exchange Web Services client implementations."""

from .calendar import ExchangeCalendarBackend, build_appointment_fields

__all__ = [
    "ExchangeCalendarBackend",
    "build_appointment_fields",
]
