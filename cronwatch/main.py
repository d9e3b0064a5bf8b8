from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from cronwatch.api.router import api_router
from cronwatch.config import get_config, get_settings
from cronwatch.core.database import AsyncSessionLocal
from cronwatch.core.datetime_utils import utc_now
from cronwatch.core.errors import (
    CronwatchError,
    DeliveryFailure,
    DuplicateJob,
    InvalidCommand,
    NotFound,
    PermissionDenied,
    StoreUnavailable,
    UnknownJob,
)
from cronwatch.core.logging import get_logger, setup_logging
from cronwatch.core.rate_limit import limiter, rate_limit_exceeded_handler
from cronwatch.core.scheduler import start_scheduler, stop_scheduler
from cronwatch.services.admins import seed_admins
from cronwatch.services.monitor import STORE_ERRORS, HealthMonitor
from cronwatch.services.notifications import SlackNotifier
from cronwatch.services.webhook_inbox import WebhookInbox

logger = get_logger(__name__)
settings = get_settings()

ERROR_STATUS: dict[type[CronwatchError], int] = {
    UnknownJob: status.HTTP_404_NOT_FOUND,
    NotFound: status.HTTP_404_NOT_FOUND,
    DuplicateJob: status.HTTP_409_CONFLICT,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    InvalidCommand: status.HTTP_400_BAD_REQUEST,
    DeliveryFailure: status.HTTP_502_BAD_GATEWAY,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def _seed_admins() -> None:
    """Apply the config.yml admin seed; an unreachable database must not block startup."""
    config = get_config()
    try:
        async with AsyncSessionLocal() as db:
            await seed_admins(db, config.admins)
            await db.commit()
    except STORE_ERRORS as e:
        logger.bind(error=str(e)).warning("admin_seed_skipped")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    setup_logging()
    config = get_config()

    app.state.webhook_inbox = WebhookInbox(max_size=config.webhook.inbox_size)
    app.state.monitor = HealthMonitor(AsyncSessionLocal, SlackNotifier(), config)

    await _seed_admins()
    app.state.scheduler = await start_scheduler(app.state.monitor, config)
    yield
    # Shutdown
    await stop_scheduler(app.state.scheduler)


app = FastAPI(
    title="Cronwatch",
    description="Cron job monitoring with Slack alerts",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

# Rate limiting for the public webhook
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(CronwatchError)
async def cronwatch_error_handler(request: Request, exc: CronwatchError) -> JSONResponse:
    """Map domain errors to HTTP status codes."""
    code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if code >= 500:
        logger.bind(path=request.url.path, error=str(exc)).error("request_failed")
    return JSONResponse(status_code=code, content={"detail": str(exc)})


# Include API routes
app.include_router(api_router)


@app.get("/health")
async def health_check(request: Request) -> dict[str, str | float | int]:
    """Liveness probe plus webhook inbox stats."""
    inbox: WebhookInbox = request.app.state.webhook_inbox
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "uptime_seconds": round(inbox.uptime_seconds, 1),
        "webhook_messages": len(inbox),
    }
