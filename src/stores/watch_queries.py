from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models import WatchQuery


def get_watch_query(session: Session, query_id: str) -> Optional[WatchQuery]:
    return session.get(WatchQuery, query_id)


def get_owned_watch_query(
    session: Session, query_id: str, owner_id: str
) -> Optional[WatchQuery]:
    return session.scalars(
        select(WatchQuery).where(WatchQuery.id == query_id, WatchQuery.owner_id == owner_id)
    ).first()


def list_owned_watch_queries(session: Session, owner_id: str) -> List[WatchQuery]:
    return list(
        session.scalars(
            select(WatchQuery)
            .where(WatchQuery.owner_id == owner_id)
            .order_by(WatchQuery.created_at.asc())
        )
    )


def get_active_watch_queries(session: Session) -> List[WatchQuery]:
    return list(session.scalars(select(WatchQuery).where(WatchQuery.is_active == True)))  # noqa: E712


def record_run(session: Session, query: WatchQuery, ran_at: datetime) -> WatchQuery:
    """Advance the schedule after a run: ``next_run = ran_at + interval``."""
    query.last_run = ran_at
    query.next_run = ran_at + timedelta(minutes=query.interval_minutes)
    session.commit()
    return query
