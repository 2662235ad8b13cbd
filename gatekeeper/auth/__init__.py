"""Permission storage, caching and validation.

This module provides the durable store and the cache the authorization
service is built on.
"""

from .cache import MemoryPermissionCache, PermissionCache, create_cache
from .errors import (
    CacheError,
    GatekeeperError,
    InvalidPayloadError,
    PermissionNotFoundError,
    StoreError,
)
from .models import ErrorCode, Permission
from .store import PermissionStore, SQLitePermissionStore
from .vocabulary import ActionVocabulary, load_vocabulary

__all__ = [
    "ActionVocabulary",
    "CacheError",
    "ErrorCode",
    "GatekeeperError",
    "InvalidPayloadError",
    "MemoryPermissionCache",
    "Permission",
    "PermissionCache",
    "PermissionNotFoundError",
    "PermissionStore",
    "SQLitePermissionStore",
    "StoreError",
    "create_cache",
    "load_vocabulary",
]
