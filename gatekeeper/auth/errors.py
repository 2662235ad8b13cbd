"""Exceptions raised by the permission store, cache and validation layers.

Each exception class carries the ErrorCode it maps to, so the service can
classify failures by type instead of inspecting message text.
"""

from .models import ErrorCode


class GatekeeperError(Exception):
    """Base exception for all gatekeeper errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    public_message: str = "Internal server error"

    def __init__(self, message: str, cause: Exception | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class InvalidPayloadError(GatekeeperError):
    """Raised when a request is missing required fields or names an unknown permission."""

    code = ErrorCode.INVALID_PAYLOAD

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return self.message


class PermissionNotFoundError(GatekeeperError):
    """Raised when revoking a permission the API key does not hold."""

    code = ErrorCode.PERMISSION_NOT_FOUND
    public_message = "Permission not found"

    def __init__(self, api_key: str, module: str, action: str):
        self.api_key = api_key
        self.module = module
        self.action = action
        super().__init__(f"Permission {module}:{action} not granted to API key")


class ApiKeyNotFoundError(GatekeeperError):
    """Raised by stores that track API keys and do not know the given one."""

    code = ErrorCode.APIKEY_NOT_FOUND
    public_message = "API key not found"


class StoreError(GatekeeperError):
    """Raised when the durable permission store fails."""

    code = ErrorCode.DB_ERROR
    public_message = "Database operation failed"


class CacheError(GatekeeperError):
    """Raised when the permission cache backend fails."""

    code = ErrorCode.CACHE_ERROR
    public_message = "Cache operation failed"
