"""
Pasteburn - Main FastAPI application.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pasteburn.config import PastePolicy, settings
from pasteburn.database import connect_store
from pasteburn.errors import PasteError
from pasteburn.lifecycle import PasteLifecycle
from pasteburn.routes import health, pastes
from pasteburn.sweeper import BackgroundSweeper

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_lifecycle() -> PasteLifecycle:
    """Wire the store and policy from settings."""
    store = connect_store(settings.REDIS_URL, prefix=settings.REDIS_PREFIX)
    return PasteLifecycle(store, PastePolicy.from_settings(settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Pasteburn application starting...")
    if getattr(app.state, "lifecycle", None) is None:
        app.state.lifecycle = build_lifecycle()
    lifecycle: PasteLifecycle = app.state.lifecycle

    # Log database status
    if lifecycle.store.using_fallback:
        logger.warning("DATABASE: Using IN-MEMORY storage (Redis not available)")
        logger.warning("   Data will NOT persist across server restarts!")
    else:
        logger.info("DATABASE: Connected to Redis")

    background: Optional[BackgroundSweeper] = None
    if settings.SWEEP_INTERVAL_SECONDS > 0:
        background = BackgroundSweeper(
            lifecycle.sweeper, settings.SWEEP_INTERVAL_SECONDS, clock=lifecycle.clock
        )
        background.start()
    yield
    if background is not None:
        background.stop()
    logger.info("Pasteburn application shutting down...")


async def paste_error_handler(request: Request, exc: PasteError) -> JSONResponse:
    """Render lifecycle errors as JSON with their status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(lifecycle: Optional[PasteLifecycle] = None) -> FastAPI:
    """Create the FastAPI app; pass `lifecycle` to bypass settings-driven wiring."""
    app = FastAPI(
        title="Pasteburn",
        description="Short-lived text pastes with expiry, burn-after-reading and renewal",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.lifecycle = lifecycle

    # Add CORS middleware (optional, for cross-origin requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PasteError, paste_error_handler)

    # Include route modules
    app.include_router(health.router)
    app.include_router(pastes.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pasteburn.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
