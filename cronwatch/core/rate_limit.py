"""Rate limiting for the public webhook using SlowAPI."""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from cronwatch.config import get_config
from cronwatch.core.logging import get_logger

logger = get_logger(__name__)

# Keyed by client IP; webhook senders are usually a handful of CI hosts
limiter = Limiter(key_func=get_remote_address)


def webhook_rate_limit() -> str:
    """Limit string for POST /webhook, e.g. '30/minute' (config.yml webhook.rate_limit)."""
    return get_config().webhook.rate_limit


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Return a JSON 429 instead of SlowAPI's plain-text default."""
    logger.bind(client=get_remote_address(request), limit=str(exc.detail)).warning(
        "webhook_rate_limited"
    )
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please try again later."},
    )
