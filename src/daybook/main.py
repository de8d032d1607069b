"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown: Redis for rate limiting,
the app_config snapshot, and the database engine.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from daybook import __version__
from daybook.api import api_router
from daybook.config import settings
from daybook.services.app_config import EMPTY_SNAPSHOT

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "daybook.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from daybook.cache import close_redis, init_redis
    try:
        await init_redis()
        logger.info("daybook.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("daybook.redis_unavailable", error=str(e))
        # Redis is optional; without it requests are not rate limited

    # Config snapshot: read once, never refreshed while running
    from daybook.db.engine import async_session_factory, engine
    from daybook.services.app_config import load_snapshot
    try:
        async with async_session_factory() as session:
            app.state.config_snapshot = await load_snapshot(session)
        logger.info("daybook.config_loaded", keys=sorted(app.state.config_snapshot))
    except Exception as e:
        app.state.config_snapshot = EMPTY_SNAPSHOT
        logger.warning("daybook.config_unavailable", error=str(e))

    yield

    # Shutdown
    logger.info("daybook.shutdown")
    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Daybook",
        description="Personal journal backend — accounts, bearer tokens, entries with spoken audio",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config_snapshot = EMPTY_SNAPSHOT

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from daybook.middleware.rate_limit import RateLimitMiddleware
    from daybook.middleware.request_id import RequestIdMiddleware
    from daybook.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: daybook.main:app)
app = create_app()
