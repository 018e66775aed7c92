"""Cloud calendar backend on Microsoft Graph."""

import logging
from typing import Any, Dict
from urllib.parse import unquote_plus

from trainingsync.errors import SyncResult
from trainingsync.models import CalendarEvent

from .client import MicrosoftGraphClient

logger = logging.getLogger(__name__)

ONLINE_MEETING_SUBJECT = "User Token Meeting"
_DATA_URI_PREFIX = "data:text/html,"


def decode_join_information(content: str) -> str:
    """Decode the URL-encoded HTML Graph returns as meeting join information."""
    decoded = unquote_plus(content)
    if decoded.startswith(_DATA_URI_PREFIX):
        decoded = decoded[len(_DATA_URI_PREFIX) :]
    return decoded


class GraphCalendarBackend:
    """Creates, updates and cancels events through Microsoft Graph.

    Creation runs as the signed-in user. Update needs application permissions
    because the caller may not own the event, and cancel goes through the
    beta endpoint.
    """

    def __init__(
        self,
        delegated_client: MicrosoftGraphClient,
        application_client: MicrosoftGraphClient,
        beta_application_client: MicrosoftGraphClient,
    ):
        self.delegated_client = delegated_client
        self.application_client = application_client
        self.beta_application_client = beta_application_client

    async def close(self) -> None:
        """Close the sessions of all three Graph clients."""
        await self.delegated_client.close()
        await self.application_client.close()
        await self.beta_application_client.close()

    async def create(self, event: CalendarEvent) -> SyncResult[CalendarEvent]:
        """Create ``event`` in the signed-in user's calendar."""
        try:
            response = await self.delegated_client.create_my_event(
                event.to_graph_payload()
            )
            created = CalendarEvent.from_graph(response)
        except Exception as e:
            logger.error(f"Graph event creation failed: {e}")
            return SyncResult.from_exception(e)

        logger.info(f"Created Graph event {created.id}")
        return SyncResult.success(created)

    async def update(
        self, event_id: str, user_id: str, event: CalendarEvent
    ) -> SyncResult[CalendarEvent]:
        """Overwrite event ``event_id`` in ``user_id``'s calendar."""
        try:
            response = await self.application_client.update_user_event(
                user_id, event_id, event.to_graph_payload()
            )
            updated = CalendarEvent.from_graph(response)
        except Exception as e:
            logger.error(f"Graph update of event {event_id} failed: {e}")
            return SyncResult.from_exception(e)

        logger.info(f"Updated Graph event {event_id}")
        return SyncResult.success(updated)

    async def cancel(self, event_id: str, user_id: str, comment: str) -> SyncResult[bool]:
        """Cancel event ``event_id`` in ``user_id``'s calendar with ``comment``."""
        try:
            await self.beta_application_client.cancel_user_event(
                user_id, event_id, comment
            )
        except Exception as e:
            logger.error(f"Graph cancellation of event {event_id} failed: {e}")
            return SyncResult.from_exception(e)

        logger.info(f"Cancelled Graph event {event_id}")
        return SyncResult.success(True)

    async def create_online_meeting(self, event: CalendarEvent) -> SyncResult[str]:
        """Provision a Teams meeting spanning ``event`` and return its join HTML."""
        meeting_data: Dict[str, Any] = {
            "startDateTime": event.start.to_datetime().isoformat(),
            "endDateTime": event.end.to_datetime().isoformat(),
            "subject": ONLINE_MEETING_SUBJECT,
        }
        try:
            meeting = await self.delegated_client.create_online_meeting(meeting_data)
        except Exception as e:
            logger.error(f"Online meeting creation failed: {e}")
            return SyncResult.from_exception(e)

        content = (meeting.get("joinInformation") or {}).get("content", "")
        return SyncResult.success(decode_join_information(content))
