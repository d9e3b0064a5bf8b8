from datetime import datetime
from typing import Any

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from cronwatch.core.datetime_utils import utc_now


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    type_annotation_map: dict[type, Any] = {}


class TimestampMixin:
    """Mixin that adds created_at timestamp (naive UTC) to models."""

    created_at: Mapped[datetime] = mapped_column(default=utc_now, index=True)
