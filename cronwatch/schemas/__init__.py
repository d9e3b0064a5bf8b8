from cronwatch.schemas.health import (
    ActivityResponse,
    AnomalyResponse,
    DigestResponse,
    DigestRowResponse,
)
from cronwatch.schemas.job import (
    JobCreate,
    JobResponse,
    JobUpdate,
    MaintainerCreate,
    MaintainerResponse,
    MaintainerSet,
)
from cronwatch.schemas.run import RunReport, RunReportResponse, RunResponse
from cronwatch.schemas.webhook import (
    WebhookAccepted,
    WebhookCreate,
    WebhookMessageResponse,
    WebhookMessagesResponse,
)

__all__ = [
    "ActivityResponse",
    "AnomalyResponse",
    "DigestResponse",
    "DigestRowResponse",
    "JobCreate",
    "JobResponse",
    "JobUpdate",
    "MaintainerCreate",
    "MaintainerResponse",
    "MaintainerSet",
    "RunReport",
    "RunReportResponse",
    "RunResponse",
    "WebhookAccepted",
    "WebhookCreate",
    "WebhookMessageResponse",
    "WebhookMessagesResponse",
]
