"""Calendar event types shared by the Graph and Exchange backends."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Sortable timestamp without offset; the zone travels in ``time_zone``.
SORTABLE_FORMAT = "%Y-%m-%dT%H:%M:%S"
UTC_TIME_ZONE = "UTC"


class AttendeeType(str, Enum):
    """Graph attendee classification."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    RESOURCE = "resource"


class BackendRoute(str, Enum):
    """Calendar backend serving a user."""

    CLOUD = "cloud"
    ON_PREMISES = "on_premises"


class Attendee(BaseModel):
    """An invited attendee."""

    address: str = Field(description="Attendee email address")
    name: str = Field("", description="Attendee display name")
    type: AttendeeType = Field(AttendeeType.REQUIRED)

    def to_graph(self) -> Dict[str, Any]:
        return {
            "emailAddress": {"address": self.address, "name": self.name},
            "type": self.type.value,
        }


class DateTimeTimeZone(BaseModel):
    """A wall-clock timestamp paired with a time zone identifier."""

    date_time: str = Field(description="Sortable timestamp, e.g. 2024-05-01T09:30:00")
    time_zone: str = Field(UTC_TIME_ZONE)

    @classmethod
    def from_datetime(cls, value: datetime) -> "DateTimeTimeZone":
        """Render ``value`` in UTC using a locale-invariant format."""
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return cls(date_time=value.strftime(SORTABLE_FORMAT), time_zone=UTC_TIME_ZONE)

    def to_datetime(self) -> datetime:
        """Parse back into an aware UTC datetime."""
        # Graph responses may carry fractional seconds
        parsed = datetime.fromisoformat(self.date_time.split(".")[0])
        return parsed.replace(tzinfo=timezone.utc)

    def to_graph(self) -> Dict[str, str]:
        return {"dateTime": self.date_time, "timeZone": self.time_zone}


class RecurrencePattern(BaseModel):
    type: str = "daily"
    interval: int = 1


class RecurrenceRange(BaseModel):
    type: str = "endDate"
    start_date: date
    end_date: date


class PatternedRecurrence(BaseModel):
    """Daily recurrence bounded by an explicit end date."""

    pattern: RecurrencePattern = Field(default_factory=RecurrencePattern)
    range: RecurrenceRange

    def to_graph(self) -> Dict[str, Any]:
        return {
            "pattern": {"type": self.pattern.type, "interval": self.pattern.interval},
            "range": {
                "type": self.range.type,
                "startDate": self.range.start_date.isoformat(),
                "endDate": self.range.end_date.isoformat(),
            },
        }


class CalendarEvent(BaseModel):
    """A calendar event in the shape submitted to a backend."""

    id: Optional[str] = Field(None, description="Backend event identifier")
    subject: str
    body_content: str = ""
    body_content_type: str = "html"
    start: DateTimeTimeZone
    end: DateTimeTimeZone
    recurrence: Optional[PatternedRecurrence] = None
    location: Optional[str] = Field(None, description="Location display name")
    is_online_meeting: bool = False
    online_meeting_provider: str = "unknown"
    online_meeting_url: Optional[str] = None
    is_reminder_on: bool = True
    allow_new_time_proposals: bool = False
    attendees: List[Attendee] = Field(default_factory=list)

    def to_graph_payload(self) -> Dict[str, Any]:
        """Build the JSON body for a Graph create or update call."""
        payload: Dict[str, Any] = {
            "subject": self.subject,
            "body": {"contentType": self.body_content_type, "content": self.body_content},
            "start": self.start.to_graph(),
            "end": self.end.to_graph(),
            "attendees": [attendee.to_graph() for attendee in self.attendees],
            "isReminderOn": self.is_reminder_on,
            "allowNewTimeProposals": self.allow_new_time_proposals,
            "isOnlineMeeting": self.is_online_meeting,
            "onlineMeetingProvider": self.online_meeting_provider,
        }

        if self.location is not None:
            payload["location"] = {"displayName": self.location}
        if self.online_meeting_url is not None:
            payload["onlineMeetingUrl"] = self.online_meeting_url
        if self.recurrence is not None:
            payload["recurrence"] = self.recurrence.to_graph()

        return payload

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "CalendarEvent":
        """Parse a Graph ``event`` resource."""
        body = data.get("body") or {}
        location = (data.get("location") or {}).get("displayName")
        start = data.get("start") or {}
        end = data.get("end") or {}

        attendees = []
        for attendee_data in data.get("attendees") or []:
            email = attendee_data.get("emailAddress") or {}
            attendees.append(
                Attendee(
                    address=email.get("address", ""),
                    name=email.get("name") or "",
                    type=AttendeeType(attendee_data.get("type", "required")),
                )
            )

        recurrence = None
        recurrence_data = data.get("recurrence")
        if recurrence_data:
            pattern = recurrence_data.get("pattern") or {}
            range_data = recurrence_data.get("range") or {}
            recurrence = PatternedRecurrence(
                pattern=RecurrencePattern(
                    type=pattern.get("type", "daily"),
                    interval=pattern.get("interval", 1),
                ),
                range=RecurrenceRange(
                    type=range_data.get("type", "endDate"),
                    start_date=date.fromisoformat(range_data["startDate"]),
                    end_date=date.fromisoformat(range_data["endDate"]),
                ),
            )

        return cls(
            id=data.get("id"),
            subject=data.get("subject", ""),
            body_content=body.get("content", ""),
            body_content_type=(body.get("contentType") or "html").lower(),
            start=DateTimeTimeZone(
                date_time=start.get("dateTime", ""),
                time_zone=start.get("timeZone", UTC_TIME_ZONE),
            ),
            end=DateTimeTimeZone(
                date_time=end.get("dateTime", ""),
                time_zone=end.get("timeZone", UTC_TIME_ZONE),
            ),
            recurrence=recurrence,
            location=location or None,
            is_online_meeting=bool(data.get("isOnlineMeeting", False)),
            online_meeting_provider=data.get("onlineMeetingProvider") or "unknown",
            online_meeting_url=data.get("onlineMeetingUrl"),
            is_reminder_on=bool(data.get("isReminderOn", True)),
            allow_new_time_proposals=bool(data.get("allowNewTimeProposals", False)),
            attendees=attendees,
        )
