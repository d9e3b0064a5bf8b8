import logging
import sys
from typing import Any

from loguru import logger

from cronwatch.config import get_settings

DEBUG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level> {extra}"
)
PLAIN_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message} {extra}"

# Polled by load balancers and the App Home refresh; access lines only at DEBUG
QUIET_PATHS = ("/health", "/webhook-messages")

# Stdlib loggers routed through loguru, with their level outside debug mode.
# The health tick fires every minute, so SQL and scheduler chatter stays at WARNING.
INTERCEPTED_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "apscheduler": logging.WARNING,
}


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the original call site."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip frames inside the logging module itself
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _quiet_paths_filter(record: dict[str, Any]) -> bool:
    """Drop access lines for polled endpoints unless logging at DEBUG."""
    message = record.get("message", "")
    if any(path in message for path in QUIET_PATHS):
        return bool(record["level"].no <= logging.DEBUG)
    return True


def setup_logging() -> None:
    """Configure loguru for the API, the scheduler and the CLI."""
    settings = get_settings()

    logger.remove()
    if settings.debug:
        logger.add(sys.stderr, level="DEBUG", format=DEBUG_FORMAT, backtrace=True, diagnose=True)
    else:
        # stderr only; containers ship it
        logger.add(
            sys.stderr,
            level="INFO",
            format=PLAIN_FORMAT,
            filter=_quiet_paths_filter,
            backtrace=True,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, level in INTERCEPTED_LOGGERS.items():
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [InterceptHandler()]
        stdlib_logger.setLevel(logging.DEBUG if settings.debug else level)


def get_logger(name: str) -> Any:
    """Loguru logger with `name` bound, used by every cronwatch module."""
    return logger.bind(name=name)
