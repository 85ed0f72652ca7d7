"""
Application entrypoint: builds the engine services in the lifespan and
mounts the HTTP routes.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.infrastructure.observability.logging import (
    get_logger,
    log_request,
    setup_logging,
)
from app.middleware import RequestContextMiddleware, register_exception_handlers
from app.routes import conversations, health, messages, users
from app.services.entity_store import EntityStore
from app.services.event_bus import EventBus
from app.services.ingestion_service import IngestionService
from app.services.seed_data import seed_demo_data

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL, log_format=settings.LOG_FORMAT)
logger = get_logger(__name__)


def build_services(app: FastAPI, seed: bool) -> None:
    """Create the store, bus and ingestion service and attach them to app.state."""
    store = EntityStore(EventBus())
    app.state.store = store
    app.state.ingestion_service = IngestionService(store)

    if seed:
        seed_demo_data(store)


def create_app(seed: bool | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        seed: Load demo data on startup; defaults to settings.should_seed_demo_data()
    """
    seed_on_startup = settings.should_seed_demo_data() if seed is None else seed

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Application starting",
            environment=settings.environment,
            debug=settings.debug,
            seed_demo_data=seed_on_startup,
        )
        build_services(app, seed_on_startup)
        logger.info("All services initialized successfully", **app.state.store.stats())

        yield

        logger.info(
            "Application shutting down",
            open_subscriptions=app.state.store.events.subscriber_count,
        )

    app = FastAPI(
        title="Inbox Priority Engine",
        description="Multi-channel message ingestion with real-time conversation prioritization",
        version="0.1.0",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(messages.router)
    app.include_router(conversations.router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests with timing."""
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000

        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(process_time, 2),
        )
        return response

    # Outermost, so log_requests runs with request_id bound.
    app.add_middleware(RequestContextMiddleware)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
