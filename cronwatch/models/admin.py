"""Admins allowed to mutate the job registry."""

from datetime import datetime

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from cronwatch.core.datetime_utils import utc_now
from cronwatch.models.base import Base


class Admin(Base):
    """Slack user with admin rights. Super-admins cannot be removed."""

    __tablename__ = "admins"

    user_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    added_at: Mapped[datetime] = mapped_column(default=utc_now)

    def __repr__(self) -> str:
        return f"<Admin {self.user_id} super={self.is_super_admin}>"
