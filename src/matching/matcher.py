from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from src.models import Listing
from src.stores.listings import contains_ci


def normalize_terms(terms: Optional[Sequence[str]]) -> List[str]:
    """Strip whitespace and drop blank entries."""
    if not terms:
        return []
    return [term.strip() for term in terms if term and term.strip()]


def build_match_filter(keywords: Sequence[str], categories: Optional[Sequence[str]] = None):
    """SQL predicate for a watch query.

    A listing matches when its title or description contains any keyword
    (case-insensitive, literal) and, if categories are given, its category is
    one of them.
    """
    keywords = normalize_terms(keywords)
    categories = normalize_terms(categories)

    conditions = []
    if keywords:
        conditions.append(
            or_(
                *(
                    or_(contains_ci(Listing.title, kw), contains_ci(Listing.description, kw))
                    for kw in keywords
                )
            )
        )
    if categories:
        conditions.append(Listing.category.in_(categories))
    return and_(*conditions) if conditions else None


def find_matching_listings(
    session: Session,
    keywords: Sequence[str],
    categories: Optional[Sequence[str]],
    since: datetime,
) -> List[Listing]:
    """Listings created at or after ``since`` matching the filter, newest first."""
    stmt = select(Listing).where(Listing.created >= since)
    predicate = build_match_filter(keywords, categories)
    if predicate is not None:
        stmt = stmt.where(predicate)
    stmt = stmt.order_by(Listing.created.desc(), Listing.id.desc())
    return list(session.scalars(stmt))
