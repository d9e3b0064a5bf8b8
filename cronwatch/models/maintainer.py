"""Job maintainers used for alert routing."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cronwatch.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from cronwatch.models.job import Job


class Maintainer(Base, TimestampMixin):
    """Links a Slack user to a job; maintainers are paged for its anomalies."""

    __tablename__ = "job_maintainers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_name: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("jobs.name", onupdate="CASCADE", ondelete="CASCADE"),
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(50), index=True)
    added_by: Mapped[str | None] = mapped_column(String(100), default=None)

    job: Mapped[Job] = relationship(back_populates="maintainers")

    __table_args__ = (UniqueConstraint("job_name", "user_id", name="uq_job_maintainer"),)

    def __repr__(self) -> str:
        return f"<Maintainer {self.job_name}:{self.user_id}>"
