"""Backend selection between Graph and Exchange."""

import logging
from typing import Optional

from trainingsync.api_clients.base import BaseDirectoryClient
from trainingsync.models import BackendRoute

logger = logging.getLogger(__name__)

SYNC_ATTRIBUTE = "onPremisesSyncEnabled"


class BackendSelector:
    """Decides which calendar backend serves a user.

    Accounts synced from an on-premises directory carry a value for
    ``onPremisesSyncEnabled`` (true or false); cloud-only accounts have none.
    The selector holds no per-user state: callers resolve a route once per
    operation and pass it along.
    """

    def __init__(self, directory: BaseDirectoryClient):
        self.directory = directory

    async def resolve_route(self, user_id: Optional[str] = None) -> BackendRoute:
        """Resolve the route for ``user_id`` (the signed-in user when None).

        Raises:
            DirectoryLookupError: The lookup failed; no fallback route applies.
        """
        profile = await self.directory.get_user(user_id, select=[SYNC_ATTRIBUTE])
        route = (
            BackendRoute.ON_PREMISES
            if profile.on_premises_sync_enabled is not None
            else BackendRoute.CLOUD
        )
        logger.info(f"Resolved {route.value} route for user {user_id or 'me'}")
        return route

    async def resolve_user_principal_name(self, user_id: Optional[str] = None) -> str:
        """Look up the principal name that addresses ``user_id``'s mailbox."""
        profile = await self.directory.get_user(user_id, select=["userPrincipalName"])
        return profile.user_principal_name
