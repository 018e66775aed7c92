"""Attendee list resolution."""

import logging
from typing import List, Optional

from trainingsync.api_clients.base import BaseUserProfileResolver
from trainingsync.models import Attendee, AttendeeType, EventRecord

logger = logging.getLogger(__name__)


def split_attendee_ids(value: Optional[str]) -> List[str]:
    """Split a semicolon delimited id list, dropping blank entries."""
    if not value:
        return []
    return [part.strip() for part in value.strip().split(";") if part.strip()]


class AttendeeResolver:
    """Expands an event's attendee id lists into invitable attendees."""

    def __init__(self, profile_resolver: BaseUserProfileResolver):
        self.profile_resolver = profile_resolver

    async def _resolve(self, user_ids: List[str]) -> List[Attendee]:
        if not user_ids:
            return []

        profiles = await self.profile_resolver.get_users(user_ids)
        return [
            Attendee(
                address=profile.user_principal_name,
                name=profile.display_name,
                type=AttendeeType.REQUIRED,
            )
            for profile in profiles
        ]

    async def resolve_attendees(self, record: EventRecord) -> List[Attendee]:
        """Registered attendees first, then auto-registered ones.

        Someone present in both lists is invited twice.
        """
        attendees = await self._resolve(split_attendee_ids(record.registered_attendees))
        attendees.extend(
            await self._resolve(split_attendee_ids(record.auto_registered_attendees))
        )
        logger.debug(f"Resolved {len(attendees)} attendees for event {record.event_id}")
        return attendees
