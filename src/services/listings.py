from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from src.crawlers.sources import RedFlagDealsCrawler
from src.models import Listing
from src.stores import listings as listing_store


def trigger_fetch_now(session: Session) -> List[Listing]:
    """Run a fetch immediately.

    Raises ``FetchInProgressError`` when a fetch is already running; fetch and
    parse failures propagate unchanged.
    """
    return RedFlagDealsCrawler(session).run()


def list_listings(
    session: Session,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "created",
    page: int = 1,
    limit: int = listing_store.DEFAULT_PAGE_SIZE,
) -> List[Listing]:
    return listing_store.list_listings(session, category, search, sort, page, limit)
