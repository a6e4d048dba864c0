"""FastAPI application setup"""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wellness_ledger.api.routes import router
from wellness_ledger.api.middleware import RequestMetricsMiddleware, setup_cors, setup_rate_limiting
from wellness_ledger.config import EMOTION_FLUSH_INTERVAL_SECONDS, LOG_LEVEL
from wellness_ledger.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConflictRetryExhausted,
    TransientStorageError,
    ValidationError,
    WellnessLedgerError,
)
from wellness_ledger.services import ServiceContext, create_context

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


async def flush_emotions_periodically(context: ServiceContext, interval: float) -> None:
    """Retry queued emotion check-ins every interval seconds until cancelled"""
    while True:
        await asyncio.sleep(interval)
        if not context.emotions.pending_count:
            continue
        try:
            written = await context.emotions.flush_pending()
        except Exception as e:
            logger.error(f"Emotion flush failed: {e}", exc_info=True)
            continue
        if written:
            logger.info(f"Flushed {written} queued emotion entries")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info("Starting API server...")
    owned = getattr(app.state, "context", None) is None
    if owned:
        app.state.context = await create_context()
    flusher = asyncio.create_task(
        flush_emotions_periodically(app.state.context, EMOTION_FLUSH_INTERVAL_SECONDS)
    )
    logger.info("Service context ready")

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    flusher.cancel()
    with suppress(asyncio.CancelledError):
        await flusher
    if owned:
        await app.state.context.close()
        app.state.context = None
    logger.info("Service context closed")


def create_api_application(context: Optional[ServiceContext] = None) -> FastAPI:
    """
    Create and configure FastAPI application

    Args:
        context: Pre-built service context (tests); when omitted the lifespan
            opens one from configuration and closes it on shutdown
    """
    app = FastAPI(
        title="Wellness Ledger API",
        description="Points, streaks, weekly goals and emotion check-ins",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.context = context

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)
    app.add_middleware(RequestMetricsMiddleware)

    # Include routes
    app.include_router(router)

    @app.exception_handler(TransientStorageError)
    @app.exception_handler(ConflictRetryExhausted)
    async def retry_later_handler(request: Request, exc: WellnessLedgerError):
        return JSONResponse(status_code=503, content=exc.to_dict())

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content=exc.to_dict())

    @app.exception_handler(AuthenticationError)
    async def authentication_handler(request: Request, exc: AuthenticationError):
        return JSONResponse(status_code=401, content=exc.to_dict(), headers={"WWW-Authenticate": "Bearer"})

    @app.exception_handler(AuthorizationError)
    async def authorization_handler(request: Request, exc: AuthorizationError):
        return JSONResponse(status_code=403, content=exc.to_dict())

    @app.exception_handler(ConfigurationError)
    async def configuration_handler(request: Request, exc: ConfigurationError):
        return JSONResponse(status_code=503, content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )

    logger.info("FastAPI application created")

    return app


app = create_api_application()
