"""Mapping of training events onto calendar events."""

import html
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from trainingsync.errors import EventPreconditionError
from trainingsync.localization import Localizer
from trainingsync.models import (
    Attendee,
    CalendarEvent,
    DateTimeTimeZone,
    EventAudience,
    EventRecord,
    EventType,
    PatternedRecurrence,
    RecurrencePattern,
    RecurrenceRange,
)

LIVE_EVENT_URL_TEXT_KEY = "CalendarEventLiveEventURLText"
TEAMS_MEETING_PROVIDER = "teamsForBusiness"
UNKNOWN_MEETING_PROVIDER = "unknown"


def require_event(record: Optional[EventRecord]) -> EventRecord:
    """Reject a missing record before any backend is contacted."""
    if record is None:
        raise EventPreconditionError("Event details cannot be null")
    return record


def attendees_required_on_create(record: EventRecord) -> bool:
    """New events invite attendees only for private auto-register events."""
    return record.is_auto_register and record.audience == EventAudience.PRIVATE


class EventMapper:
    """Converts an :class:`EventRecord` into a :class:`CalendarEvent`.

    The mapping is pure: it only reads the record, the already resolved
    attendees and the localized strings.
    """

    def __init__(self, localizer: Localizer):
        self.localizer = localizer

    def body_content(self, record: EventRecord) -> str:
        """HTML body: the escaped description, plus a join link for live events."""
        description = html.escape(record.description or "")
        if record.type != EventType.LIVE_EVENT:
            return description

        link = record.meeting_link or ""
        anchor = f"<a href='{link}'>{link}</a>"
        join_text = self.localizer.get_string(LIVE_EVENT_URL_TEXT_KEY, anchor)
        return f"{description}<br/><br/>{join_text}"

    @staticmethod
    def event_window(record: EventRecord) -> tuple[DateTimeTimeZone, DateTimeTimeZone]:
        """Start at the record start; end on the same day at ``end_time``."""
        start = record.start_date.astimezone(timezone.utc)
        end = datetime.combine(start.date(), record.end_time.replace(tzinfo=None))
        return (
            DateTimeTimeZone.from_datetime(start),
            DateTimeTimeZone.from_datetime(end.replace(tzinfo=timezone.utc)),
        )

    @staticmethod
    def recurrence(record: EventRecord) -> Optional[PatternedRecurrence]:
        """Daily recurrence up to the end date for multi-day events."""
        if record.number_of_occurrences <= 1:
            return None
        if record.end_date is None:
            raise EventPreconditionError(
                f"Recurring event {record.event_id} has no end date"
            )

        return PatternedRecurrence(
            pattern=RecurrencePattern(type="daily", interval=1),
            range=RecurrenceRange(
                type="endDate",
                start_date=record.start_date.astimezone(timezone.utc).date(),
                end_date=record.end_date,
            ),
        )

    def map_to_calendar_event(
        self, record: Optional[EventRecord], attendees: Sequence[Attendee] = ()
    ) -> CalendarEvent:
        """Build the calendar event for ``record`` inviting ``attendees``."""
        record = require_event(record)
        start, end = self.event_window(record)
        is_teams = record.type == EventType.TEAMS
        attendee_list: List[Attendee] = list(attendees)

        return CalendarEvent(
            subject=record.name,
            body_content=self.body_content(record),
            body_content_type="html",
            start=start,
            end=end,
            recurrence=self.recurrence(record),
            location=record.venue if record.type == EventType.IN_PERSON else None,
            is_online_meeting=is_teams,
            online_meeting_provider=(
                TEAMS_MEETING_PROVIDER if is_teams else UNKNOWN_MEETING_PROVIDER
            ),
            online_meeting_url=(
                record.meeting_link if record.type == EventType.LIVE_EVENT else None
            ),
            is_reminder_on=True,
            allow_new_time_proposals=False,
            attendees=attendee_list,
        )
