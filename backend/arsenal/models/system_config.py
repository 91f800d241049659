"""
System configuration model.

WHAT: Key/value rows editable by administrators at runtime.

WHY: SLA budgets per priority are operational data, not code. Storing
them here lets an admin tighten an SLA without a deploy; the values are
resolved into an explicit SLAPolicy once per operation.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from arsenal.models.base import Base, utcnow


class SystemConfig(Base):
    """A single configuration entry."""

    __tablename__ = "system_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<SystemConfig(key={self.key}, value={self.value})>"
