"""
Pytest configuration and fixtures for cronwatch tests.

Provides:
- Async test database with SQLite
- Test client for API testing (app.state wired like the lifespan does)
- Factory fixtures for jobs and runs
- A recording notifier standing in for Slack
"""

import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cronwatch.config import AppConfig, Settings, get_config, get_settings
from cronwatch.core.database import get_db
from cronwatch.core.errors import DeliveryFailure
from cronwatch.main import app
from cronwatch.models import Admin, Base, Job, Maintainer, Run, RunStatus, Severity
from cronwatch.services.monitor import HealthMonitor
from cronwatch.services.notifications import Alert
from cronwatch.services.webhook_inbox import WebhookInbox

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_SIGNING_SECRET = "test-signing-secret"
TEST_API_KEY = "test-api-key"


# Override settings for testing
class TestSettings(Settings):
    database_url: str = TEST_DATABASE_URL
    debug: bool = True
    slack_bot_token: str = "xoxb-test"
    slack_signing_secret: str = TEST_SIGNING_SECRET
    api_key: str = ""
    scheduler_enabled: bool = False
    config_path: str = "does-not-exist.yml"


class RecordingNotifier:
    """Notifier fake: records deliveries, fails or stalls for chosen recipients."""

    def __init__(self) -> None:
        self.alerts: list[tuple[str, Alert]] = []
        self.posts: list[tuple[str, str, list[dict] | None]] = []
        self.failing: set[str] = set()
        self.slow: set[str] = set()
        self.delay_seconds = 5.0

    async def send_alert(self, recipient: str, alert: Alert) -> None:
        if recipient in self.slow:
            await asyncio.sleep(self.delay_seconds)
        if recipient in self.failing:
            raise DeliveryFailure(recipient, "channel_not_found")
        self.alerts.append((recipient, alert))

    async def post(self, channel: str, text: str, blocks: list[dict] | None = None) -> None:
        if channel in self.failing:
            raise DeliveryFailure(channel, "channel_not_found")
        self.posts.append((channel, text, blocks))

    def recipients_for(self, job_name: str) -> set[str]:
        return {recipient for recipient, alert in self.alerts if alert.job_name == job_name}


def make_config(**sections: dict) -> AppConfig:
    """AppConfig with defaults, overriding sections from plain dicts."""
    from cronwatch.config import (
        AdminsConfig,
        AlertsConfig,
        DigestConfig,
        HealthConfig,
        WebhookConfig,
    )

    config = AppConfig.__new__(AppConfig)
    config.settings = TestSettings()
    config.health = HealthConfig(sections.get("health", {}))
    config.alerts = AlertsConfig(sections.get("alerts", {}))
    config.digest = DigestConfig(sections.get("digest", {}))
    config.webhook = WebhookConfig(sections.get("webhook", {}))
    config.admins = AdminsConfig(sections.get("admins", {}))
    return config


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def config_factory():
    """Build an AppConfig from per-section dicts."""
    return make_config


@pytest.fixture
def test_config() -> AppConfig:
    return make_config(webhook={"default_channel": "C-WEBHOOK"})


@pytest.fixture
def monitor(session_maker, notifier, test_config) -> HealthMonitor:
    return HealthMonitor(session_maker, notifier, test_config)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    monitor: HealthMonitor,
    test_config: AppConfig,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database override."""
    from cronwatch.core.rate_limit import limiter

    async def override_get_db():
        yield db_session

    def override_get_settings():
        return TestSettings()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = override_get_settings
    app.dependency_overrides[get_config] = lambda: test_config

    # ASGITransport does not run the lifespan
    app.state.webhook_inbox = WebhookInbox(max_size=test_config.webhook.inbox_size)
    app.state.monitor = monitor

    # Reset rate limiter storage before each test
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def job_factory(db_session: AsyncSession):
    """Factory for creating registered jobs."""

    async def _create_job(
        name: str = "nightly-etl",
        expected_every_s: int = 3600,
        max_runtime_s: int | None = None,
        severity: Severity = Severity.MEDIUM,
        alert_target: str | None = None,
        active: bool = True,
        maintainers: list[str] | None = None,
        created_at: datetime | None = None,
        manual_trigger_url: str | None = None,
    ) -> Job:
        job = Job(
            name=name,
            expected_every_s=expected_every_s,
            max_runtime_s=max_runtime_s,
            severity=severity,
            alert_target=alert_target,
            active=active,
            manual_trigger_url=manual_trigger_url,
        )
        if created_at is not None:
            job.created_at = created_at
            job.updated_at = created_at
        db_session.add(job)
        await db_session.flush()

        for user_id in maintainers or []:
            db_session.add(Maintainer(job_name=name, user_id=user_id))
        await db_session.flush()
        return job

    return _create_job


@pytest_asyncio.fixture
async def run_factory(db_session: AsyncSession):
    """Factory for creating ledger entries at a given instant."""

    async def _create_run(
        job_name: str,
        status: RunStatus,
        created_at: datetime,
        message: str | None = None,
        duration_s: float | None = None,
    ) -> Run:
        run = Run(
            job_name=job_name,
            status=status,
            created_at=created_at,
            message=message,
            duration_s=duration_s,
        )
        db_session.add(run)
        await db_session.flush()
        return run

    return _create_run


@pytest_asyncio.fixture
async def admin_factory(db_session: AsyncSession):
    """Factory for creating admins."""

    async def _create_admin(user_id: str = "UADMIN", is_super_admin: bool = False) -> Admin:
        admin = Admin(user_id=user_id, is_super_admin=is_super_admin)
        db_session.add(admin)
        await db_session.flush()
        return admin

    return _create_admin


@pytest.fixture
def api_key(client: AsyncClient) -> str:
    """Turn on X-Api-Key enforcement for the test client; returns the key."""
    app.dependency_overrides[get_settings] = lambda: TestSettings(api_key=TEST_API_KEY)
    return TEST_API_KEY


@pytest.fixture
def slack_signed():
    """Build Slack-signed headers for a raw request body."""
    import time

    from cronwatch.core.security import compute_slack_signature

    def _sign(body: bytes, content_type: str = "application/x-www-form-urlencoded") -> dict:
        ts = str(int(time.time()))
        return {
            "X-Slack-Request-Timestamp": ts,
            "X-Slack-Signature": compute_slack_signature(TEST_SIGNING_SECRET, ts, body),
            "Content-Type": content_type,
        }

    return _sign
