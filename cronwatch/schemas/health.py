from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AnomalyResponse(BaseModel):
    """A currently detected missed or stuck condition."""

    job_name: str
    kind: str
    detail: str
    severity: str
    run_id: int | None
    since: datetime | None


class DigestRowResponse(BaseModel):
    job_name: str
    status: str
    count: int


class DigestResponse(BaseModel):
    since: datetime
    rows: list[DigestRowResponse]


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_name: str | None
    event_type: str
    actor: str | None
    detail: str | None
    created_at: datetime
