"""Abstract base classes for the collaborators calendar sync depends on."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from trainingsync.models import DirectoryProfile


class BaseTokenAcquisition(ABC):
    """Abstract base class for access token acquisition."""

    @abstractmethod
    async def get_user_access_token(self, user_id: str, bearer_token: str) -> str:
        """Get a delegated token acting as ``user_id``."""

    @abstractmethod
    async def get_application_access_token(self) -> str:
        """Get an application-level token."""


class BaseDirectoryClient(ABC):
    """Abstract base class for directory user lookups."""

    @abstractmethod
    async def get_user(
        self, user_id: Optional[str] = None, select: Optional[Sequence[str]] = None
    ) -> DirectoryProfile:
        """Get a directory user; ``None`` means the signed-in user."""


class BaseUserProfileResolver(ABC):
    """Abstract base class for batch attendee profile resolution."""

    @abstractmethod
    async def get_users(self, user_ids: Sequence[str]) -> List[DirectoryProfile]:
        """Resolve identifiers to profiles, skipping ones that do not resolve."""
