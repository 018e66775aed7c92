"""Shared test fixtures and utilities for trainingsync tests.

This module contains factories for event records and mocks of the
collaborators the synchronizer talks to.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Sequence
from unittest.mock import AsyncMock

import pytest

from trainingsync.api_clients.base import BaseUserProfileResolver
from trainingsync.localization import Localizer
from trainingsync.models import (
    DirectoryProfile,
    EventAudience,
    EventRecord,
    EventStatus,
    EventType,
)
from trainingsync.services import EventMapper


def create_event_record(**overrides: Any) -> EventRecord:
    """Create an event record with sensible defaults."""
    data: Dict[str, Any] = {
        "event_id": "evt-1",
        "name": "Onboarding 101",
        "description": "Welcome session",
        "audience": EventAudience.PUBLIC,
        "type": EventType.IN_PERSON,
        "venue": "Building 4, Room 12",
        "start_date": datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
        "end_time": time(11, 0),
        "end_date": date(2024, 5, 1),
        "number_of_occurrences": 1,
        "created_by": "creator-oid",
        "status": EventStatus.ACTIVE,
    }
    data.update(overrides)
    return EventRecord(**data)


def profile_for(identifier: str) -> DirectoryProfile:
    """Directory profile whose principal name is the identifier itself."""
    name = identifier.split("@")[0]
    return DirectoryProfile(
        id=f"oid-{name}",
        user_principal_name=identifier,
        display_name=name.title(),
    )


class EchoProfileResolver(BaseUserProfileResolver):
    """Resolves every identifier to a profile and records each batch."""

    def __init__(self) -> None:
        self.batches: List[List[str]] = []

    async def get_users(self, user_ids: Sequence[str]) -> List[DirectoryProfile]:
        self.batches.append(list(user_ids))
        return [profile_for(user_id) for user_id in user_ids]


@pytest.fixture
def event_record() -> EventRecord:
    return create_event_record()


@pytest.fixture
def mapper() -> EventMapper:
    return EventMapper(Localizer("en-US"))


@pytest.fixture
def profile_resolver() -> EchoProfileResolver:
    return EchoProfileResolver()


@pytest.fixture
def failing_profile_resolver() -> AsyncMock:
    resolver = AsyncMock(spec=BaseUserProfileResolver)
    resolver.get_users.side_effect = RuntimeError("directory unavailable")
    return resolver
