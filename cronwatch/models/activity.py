"""Append-only audit log of registry and admin changes."""

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cronwatch.models.base import Base, TimestampMixin


class ActivityEntry(Base, TimestampMixin):
    """One state-changing operation, e.g. job_registered or admin_added."""

    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_name: Mapped[str | None] = mapped_column(
        String(100),
        ForeignKey("jobs.name", onupdate="CASCADE", ondelete="SET NULL"),
        index=True,
        default=None,
    )
    event_type: Mapped[str] = mapped_column(String(100), index=True)
    actor: Mapped[str | None] = mapped_column(String(100), index=True, default=None)
    detail: Mapped[str | None] = mapped_column(Text, default=None)

    def __repr__(self) -> str:
        return f"<ActivityEntry {self.event_type} job={self.job_name}>"
