"""Run ledger model."""

import enum

from sqlalchemy import BigInteger, Enum, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cronwatch.models.base import Base, TimestampMixin


class RunStatus(str, enum.Enum):
    """Status of a reported job execution."""

    STARTED = "started"
    SUCCESS = "success"
    FAILED = "failed"
    MISSED = "missed"


# Statuses that count as recent activity for missed detection
ACTIVE_STATUSES = (RunStatus.STARTED, RunStatus.SUCCESS)

# Statuses that close an open 'started' run
TERMINAL_STATUSES = (RunStatus.SUCCESS, RunStatus.FAILED)


class Run(Base, TimestampMixin):
    """One reported execution event of a job. Rows are never updated."""

    __tablename__ = "job_runs"

    # SQLite only autoincrements INTEGER PRIMARY KEY
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    job_name: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("jobs.name", onupdate="CASCADE", ondelete="CASCADE"),
        index=True,
    )
    status: Mapped[RunStatus] = mapped_column(
        Enum(
            RunStatus,
            values_callable=lambda e: [x.value for x in e],
            name="run_status",
        ),
        index=True,
    )
    message: Mapped[str | None] = mapped_column(Text, default=None)
    duration_s: Mapped[float | None] = mapped_column(Float, default=None)
    triggered_by: Mapped[str] = mapped_column(String(100), default="schedule")

    __table_args__ = (Index("ix_job_runs_job_name_created_at", "job_name", "created_at"),)

    def __repr__(self) -> str:
        return f"<Run #{self.id} {self.job_name} {self.status.value}>"
