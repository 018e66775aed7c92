"""Microsoft Graph client implementations."""

from .auth import RequestContext, TokenAcquisitionHelper
from .calendar import GraphCalendarBackend, decode_join_information
from .client import MicrosoftGraphClient
from .directory import GraphDirectoryClient

__all__ = [
    "RequestContext",
    "TokenAcquisitionHelper",
    "MicrosoftGraphClient",
    "GraphCalendarBackend",
    "GraphDirectoryClient",
    "decode_join_information",
]
