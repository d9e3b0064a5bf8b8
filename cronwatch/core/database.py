import ssl
from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cronwatch.config import get_settings
from cronwatch.core.errors import CronwatchError
from cronwatch.core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def build_engine_options(url: str) -> tuple[str, dict[str, Any]]:
    """
    Normalize the database URL and build engine options.

    asyncpg rejects libpq params like sslmode and channel_binding. They are
    stripped from the URL and SSL is passed through connect_args instead.
    SQLite (used for local runs and tests) gets no pool sizing.
    """
    parsed = urlparse(url)

    if parsed.scheme.startswith("sqlite"):
        return url, {}

    params = parse_qs(parsed.query)
    sslmode = (params.get("sslmode") or [""])[0]

    for param in ["sslmode", "channel_binding", "options"]:
        params.pop(param, None)

    clean_url = urlunparse(parsed._replace(query=urlencode(params, doseq=True)))

    options: dict[str, Any] = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 280,
    }

    hostname = parsed.hostname or ""
    is_local = hostname in ("localhost", "127.0.0.1", "db")
    if sslmode in ("require", "verify-ca", "verify-full") or (sslmode == "" and not is_local):
        options["connect_args"] = {"ssl": ssl.create_default_context()}

    return clean_url, options


clean_url, engine_options = build_engine_options(settings.database_url)

engine = create_async_engine(
    clean_url,
    echo=settings.debug,
    **engine_options,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except CronwatchError:
            # Domain errors become 4xx/5xx responses in main.py
            await session.rollback()
            raise
        except Exception as e:
            logger.bind(error=str(e)).error("database_transaction_rollback")
            await session.rollback()
            raise
