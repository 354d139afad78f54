from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from loguru import logger
from sqlalchemy.orm import Session

from src.config import get_settings
from src.matching.matcher import normalize_terms
from src.models import WatchQuery
from src.models.base import utcnow
from src.notifications.url_validator import UnsafeWebhookURLError, validate_webhook_url
from src.stores.watch_queries import get_owned_watch_query, list_owned_watch_queries

if TYPE_CHECKING:
    from src.scheduler.watch_scheduler import WatchQueryScheduler

MAX_KEYWORD_LENGTH = 100
MAX_NAME_LENGTH = 200
UPDATABLE_FIELDS = {"name", "keywords", "categories", "interval_minutes", "webhook_url", "is_active"}


class WatchQueryError(Exception):
    pass


class WatchQueryValidationError(WatchQueryError, ValueError):
    """Rejected watch query fields; nothing was saved or scheduled."""


class WatchQueryNotFoundError(WatchQueryError, LookupError):
    """No watch query with that id belongs to the owner."""


def _validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise WatchQueryValidationError("Query name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise WatchQueryValidationError(f"Query name too long (max {MAX_NAME_LENGTH} characters)")
    return name


def _validate_keywords(keywords: Optional[Sequence[str]]) -> List[str]:
    if isinstance(keywords, str):
        raise WatchQueryValidationError("Keywords must be a list of strings")
    cleaned = normalize_terms(keywords)
    if not cleaned:
        raise WatchQueryValidationError("At least one keyword is required")
    too_long = [kw for kw in cleaned if len(kw) > MAX_KEYWORD_LENGTH]
    if too_long:
        raise WatchQueryValidationError(
            f"Keyword too long (max {MAX_KEYWORD_LENGTH} characters): {too_long[0][:20]}..."
        )
    return cleaned


def _validate_categories(categories: Optional[Sequence[str]]) -> List[str]:
    if isinstance(categories, str):
        raise WatchQueryValidationError("Categories must be a list of strings")
    return normalize_terms(categories)


def _validate_interval(interval_minutes: Any) -> int:
    minimum = get_settings().watch_query_min_interval
    if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int):
        raise WatchQueryValidationError("Query interval must be a whole number of minutes")
    if interval_minutes < minimum:
        raise WatchQueryValidationError(f"Query interval must be at least {minimum} minutes")
    return interval_minutes


def _validate_webhook(webhook_url: Optional[str]) -> str:
    try:
        return validate_webhook_url(webhook_url or "")
    except UnsafeWebhookURLError as e:
        raise WatchQueryValidationError(str(e)) from e


def create_watch_query(
    session: Session,
    scheduler: "WatchQueryScheduler",
    owner_id: str,
    name: str,
    keywords: Sequence[str],
    interval_minutes: int,
    webhook_url: str,
    categories: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> WatchQuery:
    """Validate, persist and schedule a new watch query."""
    interval_minutes = _validate_interval(interval_minutes)
    now = now or utcnow()

    query = WatchQuery(
        owner_id=owner_id,
        name=_validate_name(name),
        keywords=_validate_keywords(keywords),
        categories=_validate_categories(categories),
        interval_minutes=interval_minutes,
        webhook_url=_validate_webhook(webhook_url),
        is_active=True,
        next_run=now + timedelta(minutes=interval_minutes),
    )
    session.add(query)
    session.commit()
    session.refresh(query)

    scheduler.schedule(query)
    logger.info(f"Created watch query {query.id} for owner {owner_id}")
    return query


def update_watch_query(
    session: Session,
    scheduler: "WatchQueryScheduler",
    query_id: str,
    owner_id: str,
    now: Optional[datetime] = None,
    **fields: Any,
) -> WatchQuery:
    """Apply a partial update; ``None`` values leave a field unchanged."""
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise WatchQueryValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    query = get_owned_watch_query(session, query_id, owner_id)
    if query is None:
        raise WatchQueryNotFoundError(f"Watch query {query_id} not found")

    changes = {key: value for key, value in fields.items() if value is not None}
    if "name" in changes:
        changes["name"] = _validate_name(changes["name"])
    if "keywords" in changes:
        changes["keywords"] = _validate_keywords(changes["keywords"])
    if "categories" in changes:
        changes["categories"] = _validate_categories(changes["categories"])
    if "interval_minutes" in changes:
        changes["interval_minutes"] = _validate_interval(changes["interval_minutes"])
    if "webhook_url" in changes:
        changes["webhook_url"] = _validate_webhook(changes["webhook_url"])
    if "is_active" in changes:
        changes["is_active"] = bool(changes["is_active"])

    interval = changes.get("interval_minutes")
    if interval is not None and interval != query.interval_minutes:
        query.next_run = (now or utcnow()) + timedelta(minutes=interval)

    for key, value in changes.items():
        setattr(query, key, value)
    session.commit()
    session.refresh(query)

    if query.is_active:
        scheduler.schedule(query)
    else:
        scheduler.unschedule(query.id)
    logger.info(f"Updated watch query {query.id}")
    return query


def delete_watch_query(
    session: Session, scheduler: "WatchQueryScheduler", query_id: str, owner_id: str
) -> None:
    query = get_owned_watch_query(session, query_id, owner_id)
    if query is None:
        raise WatchQueryNotFoundError(f"Watch query {query_id} not found")

    scheduler.unschedule(query.id)
    session.delete(query)
    session.commit()
    logger.info(f"Deleted watch query {query_id}")


def list_watch_queries(session: Session, owner_id: str) -> List[WatchQuery]:
    return list_owned_watch_queries(session, owner_id)


def get_watch_query(session: Session, query_id: str, owner_id: str) -> WatchQuery:
    query = get_owned_watch_query(session, query_id, owner_id)
    if query is None:
        raise WatchQueryNotFoundError(f"Watch query {query_id} not found")
    return query
