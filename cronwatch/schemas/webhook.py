from datetime import datetime

from pydantic import BaseModel, Field


class WebhookCreate(BaseModel):
    """Request body for POST /webhook.

    `message` is validated in the endpoint so a missing message returns 400
    rather than FastAPI's 422.
    """

    message: str | None = None
    source: str = Field(default="external-app", max_length=100)
    channel: str | None = Field(default=None, max_length=100)


class WebhookMessageResponse(BaseModel):
    id: str
    message: str
    source: str
    timestamp: datetime


class WebhookAccepted(BaseModel):
    success: bool = True
    message: str = "Webhook message received and processed"
    id: str


class WebhookMessagesResponse(BaseModel):
    messages: list[WebhookMessageResponse]
    count: int
