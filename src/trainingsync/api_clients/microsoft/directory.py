"""Directory lookups against Microsoft Graph."""

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from trainingsync.api_clients.base import BaseDirectoryClient, BaseUserProfileResolver
from trainingsync.errors import DirectoryLookupError
from trainingsync.models import DirectoryProfile

from .client import MicrosoftGraphClient

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("id", "displayName", "userPrincipalName")


class GraphDirectoryClient(BaseDirectoryClient, BaseUserProfileResolver):
    """Resolves directory users and attendee profiles through Graph."""

    def __init__(self, graph_client: MicrosoftGraphClient):
        self.graph_client = graph_client

    async def get_user(
        self, user_id: Optional[str] = None, select: Optional[Sequence[str]] = None
    ) -> DirectoryProfile:
        """Get a directory user; ``None`` means the signed-in user."""
        subject = user_id or "me"
        try:
            data = await self.graph_client.get_user(
                quote(user_id, safe="@") if user_id else None, select=select
            )
        except Exception as e:
            raise DirectoryLookupError(f"Lookup of user {subject} failed: {e}") from e

        return DirectoryProfile.from_graph(data)

    async def get_users(self, user_ids: Sequence[str]) -> List[DirectoryProfile]:
        """Batch resolve identifiers (object ids or principal names) to profiles.

        Identifiers the directory does not know are skipped; a failure of the
        batch request itself raises DirectoryLookupError.
        """
        if not user_ids:
            return []

        select = ",".join(PROFILE_FIELDS)
        requests: List[Dict[str, Any]] = [
            {
                "id": str(index),
                "method": "GET",
                "url": f"/users/{quote(user_id, safe='@')}?$select={select}",
            }
            for index, user_id in enumerate(user_ids)
        ]

        try:
            responses = await self.graph_client.batch(requests)
        except Exception as e:
            raise DirectoryLookupError(f"Batch user lookup failed: {e}") from e

        profiles = []
        for response in responses:
            status = int(response.get("status", 0))
            if status != 200:
                index = int(response.get("id", -1))
                user_id = user_ids[index] if 0 <= index < len(user_ids) else "?"
                logger.warning(f"Could not resolve user {user_id}: status {status}")
                continue
            profiles.append(DirectoryProfile.from_graph(response.get("body") or {}))

        return profiles
