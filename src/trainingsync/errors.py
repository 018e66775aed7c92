"""Failure types and results for calendar synchronization."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

import aiohttp
from exchangelib.errors import EWSError, UnauthorizedError

T = TypeVar("T")


class SyncError(Exception):
    """Base exception for calendar synchronization failures."""


class DirectoryLookupError(SyncError):
    """Exception raised when a directory user cannot be looked up."""


class AuthenticationError(SyncError):
    """Exception raised when an access token cannot be acquired."""


class BackendTransportError(SyncError):
    """Exception raised when a calendar backend call fails."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class EventPreconditionError(SyncError, ValueError):
    """Exception raised when event details are missing before any backend call."""


class FailureKind(str, Enum):
    """Why a backend operation did not complete."""

    DIRECTORY_LOOKUP = "directory_lookup"
    AUTHENTICATION = "authentication"
    BACKEND_TRANSPORT = "backend_transport"
    CONNECTION = "connection"
    MAPPING_PRECONDITION = "mapping_precondition"
    UNKNOWN = "unknown"


def classify_exception(exc: BaseException) -> FailureKind:
    """Map an exception raised by a collaborator to a failure kind."""
    if isinstance(exc, DirectoryLookupError):
        return FailureKind.DIRECTORY_LOOKUP
    if isinstance(exc, AuthenticationError):
        return FailureKind.AUTHENTICATION
    if isinstance(exc, EventPreconditionError):
        return FailureKind.MAPPING_PRECONDITION
    if isinstance(exc, BackendTransportError):
        if exc.status in (401, 403):
            return FailureKind.AUTHENTICATION
        return FailureKind.BACKEND_TRANSPORT
    if isinstance(exc, aiohttp.ClientResponseError):
        if exc.status in (401, 403):
            return FailureKind.AUTHENTICATION
        return FailureKind.BACKEND_TRANSPORT
    if isinstance(exc, UnauthorizedError):
        return FailureKind.AUTHENTICATION
    if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError, EWSError)):
        return FailureKind.BACKEND_TRANSPORT
    return FailureKind.UNKNOWN


@dataclass(frozen=True)
class SyncResult(Generic[T]):
    """Outcome of a backend operation that keeps the failure reason."""

    value: Optional[T] = None
    failure_kind: Optional[FailureKind] = None
    message: str = ""
    exception: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.failure_kind is None

    @classmethod
    def success(cls, value: T) -> "SyncResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: FailureKind, message: str = "") -> "SyncResult[T]":
        return cls(failure_kind=kind, message=message)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "SyncResult[T]":
        return cls(
            failure_kind=classify_exception(exc),
            message=str(exc) or repr(exc),
            exception=exc,
        )
