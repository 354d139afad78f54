from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from src.config import get_settings
from src.crawlers.base import FetchInProgressError
from src.crawlers.sources import RedFlagDealsCrawler
from src.db.database import get_sync_session
from src.matching.matcher import find_matching_listings
from src.models import Listing, WatchQuery
from src.notifications.dispatcher import WebhookDispatcher
from src.notifications.webhook import WebhookSender

settings = get_settings()


def run_listing_fetch():
    """定期抓取 deal 列表"""
    logger.info(f"Starting scheduled listing fetch at {datetime.now()}")

    with get_sync_session() as session:
        try:
            new_listings = RedFlagDealsCrawler(session).run()
            logger.info(f"Scheduled fetch inserted {len(new_listings)} new listings")
        except FetchInProgressError:
            logger.info("A fetch is already in flight, skipping this tick")
        except Exception as e:
            logger.error(f"Error in scheduled listing fetch: {e}")


def watermark_for(query: WatchQuery, now: datetime) -> datetime:
    """Lower bound on ``Listing.created`` for this run."""
    if query.last_run is not None:
        return query.last_run
    return now - timedelta(minutes=settings.watch_query_default_lookback)


def run_watch_query(
    session: Session,
    query: WatchQuery,
    now: datetime,
    sender: Optional[WebhookSender] = None,
) -> List[Listing]:
    """Find listings new since the watermark and deliver them to the webhook."""
    since = watermark_for(query, now)
    matches = find_matching_listings(session, query.keywords, query.categories, since)

    if not matches:
        logger.info(f"No new matches found for watch query \"{query.name}\"")
        return []

    logger.info(f"Found {len(matches)} new matches for watch query \"{query.name}\"")
    dispatcher = WebhookDispatcher(session, sender=sender)
    dispatcher.dispatch(query, matches)
    return matches
