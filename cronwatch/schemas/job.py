from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cronwatch.models.job import Severity

JOB_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._:-]*$"


class JobCreate(BaseModel):
    """Request body for registering a job."""

    name: str = Field(min_length=1, max_length=100, pattern=JOB_NAME_PATTERN)
    description: str | None = None
    schedule: str | None = Field(default=None, max_length=100)
    expected_every_s: int = Field(gt=0)
    max_runtime_s: int | None = Field(default=None, gt=0)
    manual_trigger_url: str | None = Field(default=None, max_length=500)
    severity: Severity = Severity.MEDIUM
    alert_target: str | None = Field(default=None, max_length=100)


class JobUpdate(BaseModel):
    """Partial update. Only fields present in the payload are applied; name cannot change."""

    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    schedule: str | None = Field(default=None, max_length=100)
    expected_every_s: int | None = Field(default=None, gt=0)
    max_runtime_s: int | None = Field(default=None, gt=0)
    manual_trigger_url: str | None = Field(default=None, max_length=500)
    severity: Severity | None = None
    alert_target: str | None = Field(default=None, max_length=100)
    active: bool | None = None

    @model_validator(mode="after")
    def _reject_null_required_fields(self) -> "JobUpdate":
        for field in ("expected_every_s", "severity", "active"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class JobResponse(BaseModel):
    """Registry entry as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    description: str | None
    schedule: str | None
    expected_every_s: int
    max_runtime_s: int | None
    manual_trigger_url: str | None
    severity: Severity
    alert_target: str | None
    active: bool
    created_at: datetime
    updated_at: datetime


class MaintainerCreate(BaseModel):
    """Request body for adding a maintainer."""

    user_id: str = Field(min_length=1, max_length=50)


class MaintainerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_name: str
    user_id: str
    added_by: str | None
    created_at: datetime


class MaintainerSet(BaseModel):
    """Request body for replacing a job's maintainer list."""

    user_ids: list[str] = Field(max_length=50)
