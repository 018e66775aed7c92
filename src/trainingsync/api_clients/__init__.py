"""API clients for the calendar backends and directory."""

from .base import BaseDirectoryClient, BaseTokenAcquisition, BaseUserProfileResolver

__all__ = [
    "BaseTokenAcquisition",
    "BaseDirectoryClient",
    "BaseUserProfileResolver",
]
