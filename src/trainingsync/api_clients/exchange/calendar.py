"""On-premises calendar backend on Exchange Web Services."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, TypeVar

from exchangelib import (
    IMPERSONATION,
    UTC,
    UTC_NOW,
    Account,
    Attendee,
    CalendarItem,
    Configuration,
    Credentials,
    EWSDateTime,
    HTMLBody,
    Mailbox,
)
from exchangelib.items import (
    ALWAYS_OVERWRITE,
    SEND_TO_ALL_AND_SAVE_COPY,
    SEND_TO_NONE,
)
from exchangelib.properties import ItemId
from exchangelib.version import EXCHANGE_2013_SP1, Version

from trainingsync.errors import BackendTransportError, SyncResult
from trainingsync.models import AttendeeType, CalendarEvent, DateTimeTimeZone
from trainingsync.secrets_manager import ServiceAccount

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields written on both create and update
_APPOINTMENT_FIELDS = [
    "subject",
    "body",
    "start",
    "end",
    "location",
    "required_attendees",
    "optional_attendees",
    "reminder_is_set",
    "reminder_due_by",
]


def _to_ews_datetime(value: DateTimeTimeZone) -> EWSDateTime:
    parsed = value.to_datetime()
    return EWSDateTime(
        parsed.year,
        parsed.month,
        parsed.day,
        parsed.hour,
        parsed.minute,
        parsed.second,
        tzinfo=UTC,
    )


def build_appointment_fields(event: CalendarEvent, body: str) -> Dict[str, Any]:
    """Translate a mapped event into Exchange appointment field values."""
    required: List[Attendee] = []
    optional: List[Attendee] = []
    for attendee in event.attendees:
        ews_attendee = Attendee(
            mailbox=Mailbox(email_address=attendee.address, name=attendee.name or None)
        )
        if attendee.type == AttendeeType.REQUIRED:
            required.append(ews_attendee)
        else:
            optional.append(ews_attendee)

    return {
        "subject": event.subject,
        "body": HTMLBody(body),
        "start": _to_ews_datetime(event.start),
        "end": _to_ews_datetime(event.end),
        "location": event.location or "",
        "required_attendees": required or None,
        "optional_attendees": optional or None,
        "reminder_is_set": True,
        # The reminder fires immediately rather than relative to the start
        "reminder_due_by": UTC_NOW(),
    }


class ExchangeCalendarBackend:
    """Creates, updates and deletes appointments through EWS impersonation.

    Every appointment is built as a local value inside a single call, so one
    backend instance can serve concurrent requests.
    """

    def __init__(
        self,
        service_url: str,
        service_account: Optional[ServiceAccount],
        max_workers: int = 10,
    ):
        self.service_url = service_url
        self.service_account = service_account
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="exchange-calendar-client"
        )

    def close(self) -> None:
        """Release the worker threads without waiting for running calls."""
        self._executor.shutdown(wait=False)

    async def _run(self, func: Callable[[], T]) -> T:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self._executor, func)

    def _build_account(self, user_principal_name: str) -> Account:
        if self.service_account is None:
            raise BackendTransportError("No Exchange service account configured")

        config = Configuration(
            service_endpoint=self.service_url,
            credentials=Credentials(
                username=self.service_account.email,
                password=self.service_account.password,
            ),
            version=Version(build=EXCHANGE_2013_SP1),
        )
        return Account(
            primary_smtp_address=user_principal_name,
            config=config,
            autodiscover=False,
            access_type=IMPERSONATION,
            default_timezone=UTC,
        )

    async def connect(self, user_principal_name: str) -> Optional[Account]:
        """Open an impersonated connection to ``user_principal_name``'s mailbox.

        Returns None when the connection cannot be constructed.
        """
        try:
            return await self._run(lambda: self._build_account(user_principal_name))
        except Exception as e:
            logger.error(f"Could not connect to mailbox {user_principal_name}: {e}")
            return None

    @staticmethod
    def _fetch(account: Account, event_id: str) -> CalendarItem:
        items = list(account.fetch(ids=[ItemId(id=event_id)]))
        if not items:
            raise BackendTransportError(f"Appointment {event_id} not found")
        item = items[0]
        # exchangelib yields per-item errors in place of the item
        if isinstance(item, Exception):
            raise item
        return item

    def _create(self, account: Account, event: CalendarEvent, body: str) -> str:
        appointment = CalendarItem(
            account=account,
            folder=account.calendar,
            **build_appointment_fields(event, body),
        )
        appointment.save(send_meeting_invitations=SEND_TO_ALL_AND_SAVE_COPY)

        saved = self._fetch(account, appointment.id)
        return str(saved.id)

    def _update(self, account: Account, event_id: str, event: CalendarEvent) -> str:
        appointment = self._fetch(account, event_id)
        for field, value in build_appointment_fields(event, event.body_content).items():
            setattr(appointment, field, value)

        # Computed but never passed to save(); kept as-is pending product review
        mode = SEND_TO_ALL_AND_SAVE_COPY if appointment.is_meeting else SEND_TO_NONE
        logger.debug(f"Appointment {event_id} invitations mode {mode} not applied")

        appointment.save(
            update_fields=_APPOINTMENT_FIELDS, conflict_resolution=ALWAYS_OVERWRITE
        )
        return str(appointment.id)

    def _delete(self, account: Account, event_id: str) -> bool:
        appointment = self._fetch(account, event_id)
        appointment.move_to_trash(send_meeting_cancellations=SEND_TO_ALL_AND_SAVE_COPY)
        return True

    async def create(
        self, account: Account, event: CalendarEvent, body: str
    ) -> SyncResult[str]:
        """Save a new appointment, inviting all attendees, and return its id."""
        try:
            event_id = await self._run(lambda: self._create(account, event, body))
        except Exception as e:
            logger.error(f"EWS appointment creation failed: {e}")
            return SyncResult.from_exception(e)

        logger.info(f"Created EWS appointment {event_id}")
        return SyncResult.success(event_id)

    async def update(
        self, account: Account, event_id: str, event: CalendarEvent
    ) -> SyncResult[str]:
        """Overwrite appointment ``event_id`` with the fields of ``event``."""
        try:
            updated_id = await self._run(lambda: self._update(account, event_id, event))
        except Exception as e:
            logger.error(f"EWS update of appointment {event_id} failed: {e}")
            return SyncResult.from_exception(e)

        logger.info(f"Updated EWS appointment {event_id}")
        return SyncResult.success(updated_id)

    async def delete(self, account: Account, event_id: str) -> SyncResult[bool]:
        """Move appointment ``event_id`` to the deleted items folder."""
        try:
            deleted = await self._run(lambda: self._delete(account, event_id))
        except Exception as e:
            logger.error(f"EWS deletion of appointment {event_id} failed: {e}")
            return SyncResult.from_exception(e)

        logger.info(f"Deleted EWS appointment {event_id}")
        return SyncResult.success(deleted)
