"""Pydantic schemas for permission requests and responses.

The same envelopes are used on the message bus and on the HTTP routes.
Field names on the wire are camelCase (``apiKey``).
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .auth.models import ErrorCode, Permission


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_key: str = Field("", alias="apiKey", description="API key whose permissions are managed")


class PermissionRequest(_Request):
    """Request naming a single (module, action) permission."""

    module: str = Field("", description="Functional area, e.g. 'inventory'")
    action: str = Field("", description="Operation within the module, e.g. 'read'")

    def missing_fields(self) -> list[str]:
        """Names of required fields that are empty."""
        fields = {"apiKey": self.api_key, "module": self.module, "action": self.action}
        return [name for name, value in fields.items() if not value]


class GrantRequest(PermissionRequest):
    """Request to grant a permission to an API key."""


class RevokeRequest(PermissionRequest):
    """Request to revoke a permission from an API key."""


class CheckRequest(PermissionRequest):
    """Request to check whether an API key holds a permission."""


class ListRequest(_Request):
    """Request to list all permissions held by an API key."""

    def missing_fields(self) -> list[str]:
        return [] if self.api_key else ["apiKey"]


class PermissionItem(BaseModel):
    """A single permission in a list response."""

    module: str
    action: str

    @classmethod
    def from_permission(cls, permission: Permission) -> "PermissionItem":
        return cls(module=permission.module, action=permission.action)


class StatusResponse(BaseModel):
    """Response to a successful grant or revoke."""

    status: Literal["ok"] = "ok"


class CheckResponse(BaseModel):
    """Response to a permission check."""

    allowed: bool


class ListResponse(BaseModel):
    """Response listing an API key's permissions."""

    permissions: list[PermissionItem] = Field(default_factory=list)


class ErrorDetail(BaseModel):
    """Error information."""

    code: ErrorCode
    message: str


class ErrorResponse(BaseModel):
    """Structured error returned instead of a success payload."""

    error: ErrorDetail

    @classmethod
    def build(cls, code: ErrorCode, message: str) -> "ErrorResponse":
        return cls(error=ErrorDetail(code=code, message=message))


class HealthResponse(BaseModel):
    """Service health and diagnostics."""

    status: str
    version: str
    bus_connected: bool
    cache_backend: str
    cache_failures: int

