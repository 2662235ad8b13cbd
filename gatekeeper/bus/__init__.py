"""Message bus adapter for the permissions service."""

from .client import ClientError, PermissionsClient
from .router import RequestRouter, subject_for

__all__ = [
    "ClientError",
    "PermissionsClient",
    "RequestRouter",
    "subject_for",
]
