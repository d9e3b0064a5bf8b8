"""Job registry model."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cronwatch.core.datetime_utils import utc_now
from cronwatch.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from cronwatch.models.maintainer import Maintainer


class Severity(str, enum.Enum):
    """Alert severity of a job."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Job(Base, TimestampMixin):
    """A monitored cron job and its expected cadence.

    `name` is the primary key and never changes after registration.
    Inactive jobs keep their history but are skipped by health evaluation.
    """

    __tablename__ = "jobs"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    schedule: Mapped[str | None] = mapped_column(String(100), default=None)  # informational only
    expected_every_s: Mapped[int] = mapped_column(Integer)
    max_runtime_s: Mapped[int | None] = mapped_column(Integer, default=None)
    manual_trigger_url: Mapped[str | None] = mapped_column(String(500), default=None)
    severity: Mapped[Severity] = mapped_column(
        Enum(
            Severity,
            values_callable=lambda e: [x.value for x in e],
            name="job_severity",
        ),
        default=Severity.MEDIUM,
    )
    alert_target: Mapped[str | None] = mapped_column(String(100), default=None)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)

    maintainers: Mapped[list[Maintainer]] = relationship(
        back_populates="job",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Maintainer.created_at",
    )

    __table_args__ = (
        CheckConstraint("expected_every_s > 0", name="ck_jobs_expected_every_positive"),
        CheckConstraint(
            "max_runtime_s IS NULL OR max_runtime_s > 0", name="ck_jobs_max_runtime_positive"
        ),
    )

    def __repr__(self) -> str:
        return f"<Job {self.name} every={self.expected_every_s}s active={self.active}>"
