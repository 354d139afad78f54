from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.db.database import Base
from src.models.base import TimestampMixin

DEFAULT_CATEGORY = "Other"


class Listing(Base, TimestampMixin):
    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(primary_key=True)
    url: Mapped[str] = mapped_column(String(500), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    category: Mapped[str] = mapped_column(String(100), default=DEFAULT_CATEGORY, nullable=False)
    # 來源網站的發文時間，只在第一次寫入時設定
    created: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    last_activity: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    votes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    dealer_name: Mapped[Optional[str]] = mapped_column(String(200))
    savings_text: Mapped[Optional[str]] = mapped_column(String(200))
    source_thread_id: Mapped[Optional[str]] = mapped_column(String(50))
    image_url: Mapped[Optional[str]] = mapped_column(String(500))

    def __repr__(self) -> str:
        return f"<Listing {self.id}:{self.title[:40]}>"
