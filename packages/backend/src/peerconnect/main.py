"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, the chat fan-out
listener, the notification sweeper, the database engine). Middleware,
CORS, the service-error handler and routers are all registered here.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from peerconnect import __version__
from peerconnect.api import api_router
from peerconnect.config import settings
from peerconnect.errors import ServiceError
from peerconnect.logconfig import configure_logging

logger = structlog.get_logger()


async def _cancel(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    configure_logging()
    logger.info(
        "peerconnect.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from peerconnect.realtime.hub import hub
    from peerconnect.realtime.pubsub import close_redis, init_redis

    listener_task = None
    try:
        await init_redis()
        listener_task = asyncio.create_task(hub.run_listener())
        logger.info("peerconnect.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis is optional — chat falls back to in-process delivery
        logger.warning("peerconnect.redis_unavailable", error=str(e))

    from peerconnect.services.sweeper import NotificationSweeper

    sweeper = NotificationSweeper()
    sweeper_task = asyncio.create_task(sweeper.run_loop())

    yield

    logger.info("peerconnect.shutdown")

    sweeper.stop()
    await _cancel(sweeper_task)
    if listener_task:
        await _cancel(listener_task)

    await close_redis()

    from peerconnect.db.engine import engine
    await engine.dispose()


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map domain exceptions raised by services to {"detail": ...} responses."""
    if exc.status_code >= 500:
        logger.error("http.service_error", path=request.url.path, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="PeerConnect",
        description="Peer-support community backend: groups, meetings, resources and chat",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestContext → Security → RateLimit → CORS → handler

    from peerconnect.middleware.rate_limit import RateLimitMiddleware
    from peerconnect.middleware.request_context import RequestContextMiddleware
    from peerconnect.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(ServiceError, service_error_handler)

    # Mount API routes
    app.include_router(api_router)

    # Mount the chat WebSocket at /chat (outside /api, as clients expect)
    from peerconnect.realtime.gateway import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: peerconnect.main:app)
app = create_app()
