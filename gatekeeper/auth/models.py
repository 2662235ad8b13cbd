"""Permission data models."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes returned in error responses."""

    APIKEY_NOT_FOUND = "apiKey_not_found"
    DB_ERROR = "db_error"
    CACHE_ERROR = "cache_error"
    INVALID_PAYLOAD = "invalid_payload"
    INTERNAL_ERROR = "internal_error"
    PERMISSION_NOT_FOUND = "permission_not_found"


@dataclass(frozen=True)
class Permission:
    """A (module, action) pair held by an API key."""

    module: str  # Functional area, e.g. "inventory"
    action: str  # Operation within the module, e.g. "read"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"module": self.module, "action": self.action}

    @classmethod
    def from_dict(cls, data: dict) -> "Permission":
        """Create from a dictionary with module and action keys."""
        return cls(module=data["module"], action=data["action"])


def has_permission(permissions: list[Permission], module: str, action: str) -> bool:
    """Check whether a permission set contains the exact (module, action) pair."""
    return Permission(module=module, action=action) in set(permissions)
