"""FastAPI routes for the permissions service.

The HTTP routes mirror the bus subjects one to one. Error responses keep the
bus contract ({error: {code, message}}) and are returned with status 200.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from .. import __version__
from ..bus.router import RequestRouter
from ..schemas import (
    CheckRequest,
    CheckResponse,
    ErrorResponse,
    GrantRequest,
    HealthResponse,
    ListRequest,
    ListResponse,
    RevokeRequest,
    StatusResponse,
)
from ..service import AuthorizationService

router = APIRouter()

# These will be initialized by the app
_service: Optional[AuthorizationService] = None
_bus_router: Optional[RequestRouter] = None


def init_dependencies(service: AuthorizationService, bus_router: Optional[RequestRouter] = None) -> None:
    """Initialize global dependencies."""
    global _service, _bus_router
    _service = service
    _bus_router = bus_router


def get_service() -> AuthorizationService:
    """Get authorization service dependency."""
    if _service is None:
        raise HTTPException(status_code=500, detail="Authorization service not initialized")
    return _service


@router.get("/health", response_model=HealthResponse)
async def health(service: AuthorizationService = Depends(get_service)) -> HealthResponse:
    """Health check with cache diagnostics."""
    return HealthResponse(
        status="ok",
        version=__version__,
        bus_connected=_bus_router is not None and _bus_router.is_running,
        cache_backend=service.cache.name,
        cache_failures=service.cache_failures,
    )


@router.post("/permissions/grant", response_model=StatusResponse | ErrorResponse)
async def grant_permission(
    request: GrantRequest,
    service: AuthorizationService = Depends(get_service),
) -> StatusResponse | ErrorResponse:
    """Grant a permission to an API key."""
    return await service.grant(request)


@router.post("/permissions/revoke", response_model=StatusResponse | ErrorResponse)
async def revoke_permission(
    request: RevokeRequest,
    service: AuthorizationService = Depends(get_service),
) -> StatusResponse | ErrorResponse:
    """Revoke a permission from an API key."""
    return await service.revoke(request)


@router.post("/permissions/check", response_model=CheckResponse | ErrorResponse)
async def check_permission(
    request: CheckRequest,
    service: AuthorizationService = Depends(get_service),
) -> CheckResponse | ErrorResponse:
    """Check whether an API key holds a permission."""
    return await service.check(request)


@router.post("/permissions/list", response_model=ListResponse | ErrorResponse)
async def list_permissions(
    request: ListRequest,
    service: AuthorizationService = Depends(get_service),
) -> ListResponse | ErrorResponse:
    """List the permissions held by an API key."""
    return await service.list(request)
