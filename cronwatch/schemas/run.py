from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from cronwatch.models.run import RunStatus


class RunReport(BaseModel):
    """Start/finish signal sent by a job wrapper.

    'missed' is derived by the health evaluator and cannot be reported.
    """

    job_name: str = Field(min_length=1, max_length=100)
    status: Literal["started", "success", "failed"]
    message: str | None = None
    duration_s: float | None = Field(default=None, ge=0)
    triggered_by: str | None = Field(default=None, max_length=100)


class RunReportResponse(BaseModel):
    ok: bool = True
    run_id: int


class RunResponse(BaseModel):
    """Ledger entry as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    job_name: str
    status: RunStatus
    message: str | None
    duration_s: float | None
    triggered_by: str
    created_at: datetime
