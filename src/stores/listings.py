from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from sqlalchemy import Select, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from src.models import Listing

if TYPE_CHECKING:
    from src.crawlers.base import ListingRecord

MAX_SEARCH_LENGTH = 100
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 200

# Refreshed on every sighting; title/url/created are only written on insert.
REFRESHED_COLUMNS = ("votes", "views", "comment_count", "last_activity", "category")
PROVENANCE_COLUMNS = ("dealer_name", "savings_text", "source_thread_id", "image_url")

SORT_COLUMNS = {
    "created": Listing.created,
    "votes": Listing.votes,
    "views": Listing.views,
    "comments": Listing.comment_count,
    "last_activity": Listing.last_activity,
}


class ListingQueryError(ValueError):
    """Invalid listing filter (e.g. an oversized search term)."""


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a user term only ever matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_ci(column, term: str):
    return column.ilike(f"%{escape_like(term)}%", escape="\\")


def _insert_for(session: Session):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Bulk upsert is not supported for dialect {dialect!r}")


def upsert_listings(session: Session, records: Sequence["ListingRecord"]) -> List[Listing]:
    """Insert new listings and refresh counters of known ones in one statement.

    Returns the listings that did not exist before the call, newest first.
    """
    if not records:
        return []

    urls = [record.url for record in records]
    existing = set(session.scalars(select(Listing.url).where(Listing.url.in_(urls))))

    insert = _insert_for(session)
    stmt = insert(Listing.__table__).values([record.to_row() for record in records])
    excluded = stmt.excluded
    updates: Dict[str, Any] = {name: excluded[name] for name in REFRESHED_COLUMNS}
    for name in PROVENANCE_COLUMNS:
        # keep the stored value when this sighting lacks it
        updates[name] = func.coalesce(excluded[name], getattr(Listing, name))
    updates["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=["url"], set_=updates)

    session.execute(stmt)
    session.commit()
    # rows changed behind the ORM's back
    session.expire_all()

    new_urls = [url for url in urls if url not in existing]
    if not new_urls:
        return []
    return list(
        session.scalars(
            select(Listing)
            .where(Listing.url.in_(new_urls))
            .order_by(Listing.created.desc())
        )
    )


def listings_statement(
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "created",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Select:
    """Build the paginated display query shared by sync and async callers."""
    stmt = select(Listing)
    if category and category != "all":
        stmt = stmt.where(Listing.category == category)
    if search:
        search = search.strip()
        if len(search) > MAX_SEARCH_LENGTH:
            raise ListingQueryError(
                f"Search query too long (max {MAX_SEARCH_LENGTH} characters)"
            )
        stmt = stmt.where(
            or_(
                contains_ci(Listing.title, search),
                contains_ci(Listing.description, search),
                contains_ci(Listing.dealer_name, search),
            )
        )

    sort_column = SORT_COLUMNS.get(sort, Listing.created)
    limit = max(1, min(MAX_PAGE_SIZE, limit))
    page = max(1, page)
    return (
        stmt.order_by(sort_column.desc(), Listing.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )


def list_listings(
    session: Session,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "created",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> List[Listing]:
    stmt = listings_statement(category, search, sort, page, limit)
    return list(session.scalars(stmt))
