from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.db.database import Base


class DeliveryStatus(enum.Enum):
    sent = "sent"
    failed = "failed"


class NotificationLog(Base):
    """One row per webhook delivery attempt for a watch query run."""

    __tablename__ = "notification_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    # No foreign key: logs outlive deleted watch queries.
    watch_query_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    match_count: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[DeliveryStatus] = mapped_column(Enum(DeliveryStatus), nullable=False)
    error: Mapped[Optional[str]] = mapped_column(String(500))
    sent_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationLog query={self.watch_query_id} "
            f"{self.status.value} matches={self.match_count}>"
        )
