from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.db.database import Base
from src.models.base import TimestampMixin


def _new_query_id() -> str:
    return uuid.uuid4().hex


class WatchQuery(Base, TimestampMixin):
    __tablename__ = "watch_queries"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_query_id)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    keywords: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    categories: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    interval_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    webhook_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    last_run: Mapped[Optional[datetime]] = mapped_column(DateTime)
    next_run: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<WatchQuery {self.id}:{self.name}>"
