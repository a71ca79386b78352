"""SlotSwap API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map SlotSwapError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, transaction capability and coordinator built once on startup (lifespan)

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - The capability is created here and probed lazily on the first scope; it is owned by
      the coordinator on app.state, never cached at module level
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from slotswap.api.error_handlers import register_error_handlers
from slotswap.api.routes import health, slots, swaps
from slotswap.config import get_settings
from slotswap.infrastructure.database import init_db
from slotswap.infrastructure.observability import setup_logging
from slotswap.infrastructure.transactions import (
    TransactionCapability, TransactionCoordinator,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    capability = TransactionCapability(
        manager.engine,
        mode=settings.transaction_mode,
        probe_timeout_seconds=settings.transaction_probe_timeout_seconds,
    )
    app.state.coordinator = TransactionCoordinator(
        manager.session_factory, capability,
    )
    logger.info(
        f"SlotSwap API started (transaction_mode={settings.transaction_mode.value})",
    )
    yield
    logger.info("SlotSwap API shutting down")
    await manager.dispose()


app = FastAPI(
    title="SlotSwap API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(slots.router)
app.include_router(swaps.router)

register_error_handlers(app)
