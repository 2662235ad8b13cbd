"""Gatekeeper - FastAPI application entry point.

The application lifespan owns every connection: it opens the permission
store and cache, builds the authorization service, and starts the NATS
request router. Shutdown closes them in reverse order.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from . import __version__
from .api.routes import init_dependencies, router
from .auth.cache import create_cache
from .auth.store import SQLitePermissionStore
from .auth.vocabulary import load_vocabulary
from .bus.router import RequestRouter
from .config.settings import Settings, get_settings
from .service import AuthorizationService

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("gatekeeper")


async def build_service(settings: Settings) -> AuthorizationService:
    """Open the store and cache and wire them into a service."""
    logger.info("Initializing permission store...")
    store = SQLitePermissionStore(settings.db_path)
    await store.initialize()

    logger.info(f"Initializing {settings.cache_backend} cache...")
    cache = create_cache(settings)
    try:
        await cache.initialize()
    except Exception:
        await store.close()
        raise

    vocabulary = None
    if settings.vocabulary_path:
        try:
            vocabulary = load_vocabulary(settings.vocabulary_path)
        except Exception:
            await cache.close()
            await store.close()
            raise

    return AuthorizationService(store, cache, vocabulary=vocabulary)


async def close_service(service: AuthorizationService) -> None:
    """Release the cache and store connections held by a service."""
    await service.cache.close()
    await service.store.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting Gatekeeper v{__version__}")

    service = await build_service(settings)

    nc = None
    bus_router = None
    if settings.bus_enabled:
        import nats

        logger.info(f"Connecting to NATS at {settings.nats_url}...")
        try:
            nc = await nats.connect(servers=settings.nats_url)
            bus_router = RequestRouter(
                service,
                subject_prefix=settings.subject_prefix,
                queue=settings.queue_group,
            )
            await bus_router.start(nc)
        except Exception as e:
            logger.error(f"Failed to start message bus: {e}")
            if nc is not None:
                try:
                    await nc.close()
                except Exception as close_error:
                    logger.warning(f"Error closing NATS connection: {close_error}")
            await close_service(service)
            raise
    else:
        logger.info("Message bus disabled, serving HTTP only")

    init_dependencies(service, bus_router)
    logger.info("Permissions service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down...")

    if bus_router is not None:
        await bus_router.stop()
    if nc is not None:
        try:
            await nc.drain()
        except Exception as e:
            logger.warning(f"Error draining NATS connection: {e}")

    await close_service(service)
    logger.info("Shutdown completed")


# Create FastAPI app
app = FastAPI(
    title="Gatekeeper",
    description="Per-API-key permission service",
    version=__version__,
    lifespan=lifespan,
)

# Include routes
app.include_router(router)


def run(host: str | None = None, port: int | None = None) -> None:
    """Run the application (entry point for CLI)."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    logger.info(f"Starting server on {host}:{port}")

    uvicorn.run(
        "gatekeeper.main:app",
        host=host,
        port=port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
