"""Authorization service.

Answers grant/revoke/check/list requests over a durable permission store and
a cache-aside read cache. The service holds no state of its own beyond a
diagnostic counter; any number of instances can run against the same store
and cache.

Consistency model:
    - A grant or revoke is durable in the store before the response is sent.
    - The cache entry for the key is then refreshed from the store. The
      refresh is best effort: if it fails, the write still succeeds and the
      next read miss rebuilds the entry. Until then a concurrent reader may
      see the previous permission set.
    - Reads try the cache first. A miss, a cache fault and a malformed entry
      are all treated as "no entry" and fall back to the store.
"""

from __future__ import annotations

import logging

from .auth.cache import PermissionCache
from .auth.errors import GatekeeperError, InvalidPayloadError
from .auth.models import ErrorCode, Permission, has_permission
from .auth.store import PermissionStore
from .auth.vocabulary import ActionVocabulary
from .schemas import (
    CheckRequest,
    CheckResponse,
    ErrorResponse,
    GrantRequest,
    ListRequest,
    ListResponse,
    PermissionItem,
    PermissionRequest,
    RevokeRequest,
    StatusResponse,
)

logger = logging.getLogger("gatekeeper.service")


class AuthorizationService:
    """Stateless orchestrator over a PermissionStore and a PermissionCache.

    Every public method returns a response model and never raises.

    Usage:
        service = AuthorizationService(store, cache)
        await service.grant(GrantRequest(apiKey="k1", module="inventory", action="read"))
        result = await service.check(CheckRequest(apiKey="k1", module="inventory", action="read"))
        assert result.allowed
    """

    def __init__(
        self,
        store: PermissionStore,
        cache: PermissionCache,
        vocabulary: ActionVocabulary | None = None,
    ):
        self.store = store
        self.cache = cache
        self.vocabulary = vocabulary
        self.cache_failures = 0

    async def grant(self, request: GrantRequest) -> StatusResponse | ErrorResponse:
        """Grant a permission. Granting an already-held permission succeeds."""
        logger.info(f"Grant request received: {request.module}:{request.action}")
        try:
            self._validate(request)
            self._validate_vocabulary(request)

            await self.store.grant(request.api_key, request.module, request.action)
            await self._refresh_cache(request.api_key)

            logger.info(f"Permission granted: {request.module}:{request.action}")
            return StatusResponse()
        except Exception as e:
            return self._handle_error("grant", e)

    async def revoke(self, request: RevokeRequest) -> StatusResponse | ErrorResponse:
        """Revoke a permission. Fails with permission_not_found if it was never granted."""
        logger.info(f"Revoke request received: {request.module}:{request.action}")
        try:
            self._validate(request)

            await self.store.revoke(request.api_key, request.module, request.action)
            await self._refresh_cache(request.api_key)

            logger.info(f"Permission revoked: {request.module}:{request.action}")
            return StatusResponse()
        except Exception as e:
            return self._handle_error("revoke", e)

    async def check(self, request: CheckRequest) -> CheckResponse | ErrorResponse:
        """Check whether the API key holds exactly (module, action)."""
        try:
            self._validate(request)

            permissions = await self._resolve_permissions(request.api_key)
            allowed = has_permission(permissions, request.module, request.action)

            logger.info(f"Permission check {request.module}:{request.action}: allowed={allowed}")
            return CheckResponse(allowed=allowed)
        except Exception as e:
            return self._handle_error("check", e)

    async def list(self, request: ListRequest) -> ListResponse | ErrorResponse:
        """List every permission held by the API key."""
        try:
            self._validate(request)

            permissions = await self._resolve_permissions(request.api_key)

            logger.info(f"Permissions list retrieved: count={len(permissions)}")
            return ListResponse(permissions=[PermissionItem.from_permission(p) for p in permissions])
        except Exception as e:
            return self._handle_error("list", e)

    def _validate(self, request: PermissionRequest | ListRequest) -> None:
        missing = request.missing_fields()
        if missing:
            raise InvalidPayloadError(f"Missing required fields: {', '.join(missing)}")

    def _validate_vocabulary(self, request: PermissionRequest) -> None:
        if self.vocabulary is None:
            return
        if not self.vocabulary.is_allowed(request.module, request.action):
            raise InvalidPayloadError(
                f"Unknown permission {request.module}:{request.action} "
                f"({self.vocabulary.describe(request.module)})"
            )

    async def _resolve_permissions(self, api_key: str) -> list[Permission]:
        """Cache-aside read of an API key's permission set."""
        try:
            cached = await self.cache.get(api_key)
        except Exception as e:
            self._record_cache_failure("read", e)
            cached = None

        if cached is not None:
            return cached

        permissions = await self.store.get_permissions(api_key)

        try:
            await self.cache.set(api_key, permissions)
        except Exception as e:
            self._record_cache_failure("populate", e)

        return permissions

    async def _refresh_cache(self, api_key: str) -> None:
        """Rewrite the cache entry from the store after a write. Best effort."""
        try:
            permissions = await self.store.get_permissions(api_key)
            await self.cache.set(api_key, permissions)
        except Exception as e:
            self._record_cache_failure("refresh", e)
            # Drop the entry so the next read goes to the store
            try:
                await self.cache.delete(api_key)
            except Exception as delete_error:
                self._record_cache_failure("invalidate", delete_error)

    def _record_cache_failure(self, operation: str, error: Exception) -> None:
        self.cache_failures += 1
        logger.warning(
            f"Cache {operation} failed, continuing without cache "
            f"(failures={self.cache_failures}): {error}"
        )

    def _handle_error(self, operation: str, error: Exception) -> ErrorResponse:
        """Map an exception to a structured error response by its type."""
        if isinstance(error, InvalidPayloadError):
            logger.warning(f"{operation} rejected: {error.message}")
            return ErrorResponse.build(error.code, error.public_message)

        if isinstance(error, GatekeeperError):
            logger.error(f"{operation} failed ({error.code.value}): {error.message}")
            return ErrorResponse.build(error.code, error.public_message)

        logger.exception(f"{operation} failed with unexpected error: {error}")
        return ErrorResponse.build(ErrorCode.INTERNAL_ERROR, "Internal server error")
