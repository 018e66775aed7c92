"""Microsoft Graph token acquisition using MSAL."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import msal  # type: ignore[import-untyped]

from trainingsync.api_clients.base import BaseTokenAcquisition
from trainingsync.config import AppConfig
from trainingsync.errors import AuthenticationError

logger = logging.getLogger(__name__)

# Delegated scopes requested on behalf of the signed-in user
_DELEGATED_SCOPES = [
    "https://graph.microsoft.com/Calendars.ReadWrite",
    "https://graph.microsoft.com/OnlineMeetings.ReadWrite",
    "https://graph.microsoft.com/User.Read",
    "https://graph.microsoft.com/User.ReadBasic.All",
]

# Application permissions are granted in the app registration
_APPLICATION_SCOPES = ["https://graph.microsoft.com/.default"]

OBJECT_ID_CLAIM_TYPE = "http://schemas.microsoft.com/identity/claims/objectidentifier"


@dataclass(frozen=True)
class RequestContext:
    """The acting user of one inbound request."""

    user_object_id: str
    bearer_token: str

    @classmethod
    def from_request(
        cls, headers: Mapping[str, str], claims: Mapping[str, str]
    ) -> Optional["RequestContext"]:
        """Build a context from request headers and validated token claims.

        Returns None when the caller has no object id claim or bearer token.
        """
        user_object_id = None
        for claim_type, value in claims.items():
            if claim_type.lower() in (OBJECT_ID_CLAIM_TYPE, "oid"):
                user_object_id = value
                break

        authorization = ""
        for name, value in headers.items():
            if name.lower() == "authorization":
                authorization = value
                break

        scheme, _, token = authorization.partition(" ")
        if not user_object_id or scheme.lower() != "bearer" or not token.strip():
            return None

        return cls(user_object_id=user_object_id, bearer_token=token.strip())


class TokenAcquisitionHelper(BaseTokenAcquisition):
    """Acquires Graph tokens for the signed-in user and for the application."""

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        delegated_scopes: Optional[Sequence[str]] = None,
    ) -> None:
        self._delegated_scopes = list(delegated_scopes or _DELEGATED_SCOPES)
        self._msal_app = msal.ConfidentialClientApplication(
            client_id=client_id,
            client_credential=client_secret,
            authority=f"https://login.microsoftonline.com/{tenant_id}",
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> "TokenAcquisitionHelper":
        return cls(config.tenant_id, config.client_id, config.client_secret)

    async def get_user_access_token(self, user_id: str, bearer_token: str) -> str:
        """Exchange the caller's bearer token for a Graph token (on-behalf-of)."""
        result = self._msal_app.acquire_token_on_behalf_of(
            user_assertion=bearer_token, scopes=self._delegated_scopes
        )
        return self._access_token_from_result(result, f"user {user_id}")

    async def get_application_access_token(self) -> str:
        """Acquire an application token (client credentials)."""
        # MSAL serves this from its in-memory cache until it nears expiry
        result = self._msal_app.acquire_token_for_client(scopes=_APPLICATION_SCOPES)
        return self._access_token_from_result(result, "application")

    def _access_token_from_result(
        self, result: Optional[Dict[str, Any]], subject: str
    ) -> str:
        if result and "access_token" in result:
            logger.debug(f"Acquired Graph token for {subject}")
            return str(result["access_token"])

        result = result or {}
        error = result.get("error", "Unknown error")
        error_description = result.get("error_description", "No description")
        raise AuthenticationError(
            f"Token acquisition failed for {subject}: {error} - {error_description}"
        )
