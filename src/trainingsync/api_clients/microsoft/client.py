"""Microsoft Graph API client."""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlencode

import aiohttp

from trainingsync.config import DEFAULT_GRAPH_API_BASE_URL
from trainingsync.errors import BackendTransportError

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]

# Ask Graph to label every returned dateTime as UTC
PREFER_UTC_HEADER = {"Prefer": 'outlook.timezone="UTC"'}

# Graph accepts at most 20 requests per JSON batch
MAX_BATCH_SIZE = 20


class MicrosoftGraphClient:
    """High-level client for Microsoft Graph API interactions.

    Each client is bound to one token provider, so a delegated client and an
    application client are two instances.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str = DEFAULT_GRAPH_API_BASE_URL,
    ):
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "MicrosoftGraphClient":
        """Async context manager entry."""
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an active session."""
        if not self.session:
            self.session = aiohttp.ClientSession()
        return self.session

    async def _get_headers(self) -> Dict[str, str]:
        token = await self.token_provider()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make a request to Microsoft Graph API."""
        request_headers = await self._get_headers()
        if headers:
            request_headers.update(headers)

        session = self._ensure_session()

        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        if params:
            # Remove None values
            params = {k: v for k, v in params.items() if v is not None}
            if params:
                url += "?" + urlencode(params)

        logger.debug(f"Graph {method} {url}")

        async with session.request(
            method=method,
            url=url,
            headers=request_headers,
            json=data,
        ) as response:
            if response.status >= 400:
                detail = await response.text()
                raise BackendTransportError(
                    f"Graph {method} {endpoint} failed with {response.status}: {detail}",
                    status=response.status,
                )

            # Return empty dict for 202 Accepted / 204 No Content
            if response.status in (202, 204):
                return {}

            return dict(await response.json())

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make a GET request."""
        return await self._make_request("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make a POST request."""
        return await self._make_request("POST", endpoint, data=data, headers=headers)

    async def patch(
        self,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make a PATCH request."""
        return await self._make_request("PATCH", endpoint, data=data, headers=headers)

    # User Methods
    async def get_user(
        self, user_id: Optional[str] = None, select: Optional[Sequence[str]] = None
    ) -> Dict[str, Any]:
        """Get a user, or the signed-in user when ``user_id`` is None."""
        endpoint = f"users/{user_id}" if user_id else "me"
        params = {"$select": ",".join(select)} if select else None
        return await self.get(endpoint, params=params)

    async def batch(self, requests: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Send a JSON batch and return the responses ordered by request id."""
        responses: List[Dict[str, Any]] = []
        for start in range(0, len(requests), MAX_BATCH_SIZE):
            chunk = requests[start : start + MAX_BATCH_SIZE]
            result = await self.post("$batch", data={"requests": chunk})
            responses.extend(result.get("responses", []))

        order = {str(request["id"]): index for index, request in enumerate(requests)}
        return sorted(responses, key=lambda r: order.get(str(r.get("id")), len(order)))

    # Calendar Methods
    async def create_my_event(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        """Create an event in the signed-in user's calendar."""
        return await self.post("me/events", data=event_data, headers=PREFER_UTC_HEADER)

    async def update_user_event(
        self, user_id: str, event_id: str, event_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Update an event in ``user_id``'s calendar."""
        return await self.patch(
            f"users/{user_id}/events/{event_id}",
            data=event_data,
            headers=PREFER_UTC_HEADER,
        )

    async def cancel_user_event(
        self, user_id: str, event_id: str, comment: str
    ) -> Dict[str, Any]:
        """Cancel an event in ``user_id``'s calendar, notifying attendees."""
        return await self.post(
            f"users/{user_id}/events/{event_id}/cancel", data={"Comment": comment}
        )

    # Online Meeting Methods
    async def create_online_meeting(
        self, meeting_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Create a standalone Teams meeting for the signed-in user."""
        return await self.post("me/onlineMeetings", data=meeting_data)
