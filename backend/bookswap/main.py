"""BookSwap API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map BookSwapError → structured JSON responses
    - Database manager and event bus opened in the lifespan, kept on app.state,
      released on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - The API only publishes; consumers run in `python -m bookswap.worker`
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bookswap.api.error_handlers import register_error_handlers
from bookswap.api.routes import exchanges, health
from bookswap.config import get_settings
from bookswap.infrastructure.database import DatabaseSessionManager
from bookswap.infrastructure.event_bus import RedisStreamBus
from bookswap.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    app.state.db_manager = DatabaseSessionManager(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    try:
        async with RedisStreamBus.connect(settings.redis_url) as bus:
            app.state.bus = bus
            logger.info("BookSwap API started")
            yield
            logger.info("BookSwap API shutting down")
    finally:
        await app.state.db_manager.dispose()


app = FastAPI(
    title="BookSwap Exchange API", version="1.0.0", lifespan=lifespan,
)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(exchanges.router)

register_error_handlers(app)
