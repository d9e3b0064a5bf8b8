from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from cronwatch.config import AppConfig, Settings, get_config, get_settings
from cronwatch.core.database import get_db
from cronwatch.core.security import verify_api_key
from cronwatch.services.alerts import AlertDispatcher
from cronwatch.services.monitor import HealthMonitor
from cronwatch.services.notifications import Notifier
from cronwatch.services.webhook_inbox import WebhookInbox

# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Config = Annotated[AppConfig, Depends(get_config)]


def get_monitor(request: Request) -> HealthMonitor:
    """Health monitor created at startup (see main.lifespan)."""
    monitor: HealthMonitor = request.app.state.monitor
    return monitor


def get_alert_dispatcher(monitor: Annotated[HealthMonitor, Depends(get_monitor)]) -> AlertDispatcher:
    return monitor.dispatcher


def get_notifier(monitor: Annotated[HealthMonitor, Depends(get_monitor)]) -> Notifier:
    return monitor.dispatcher.notifier


def get_webhook_inbox(request: Request) -> WebhookInbox:
    inbox: WebhookInbox = request.app.state.webhook_inbox
    return inbox


async def require_api_key(
    settings: AppSettings,
    x_api_key: str | None = Header(default=None, alias="X-Api-Key"),
) -> None:
    """Reject the request unless X-Api-Key matches API_KEY (no-op when API_KEY is unset)."""
    if not verify_api_key(settings.api_key, x_api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )


Monitor = Annotated[HealthMonitor, Depends(get_monitor)]
Dispatcher = Annotated[AlertDispatcher, Depends(get_alert_dispatcher)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]
Inbox = Annotated[WebhookInbox, Depends(get_webhook_inbox)]
ApiKey = Depends(require_api_key)
