from __future__ import annotations

from typing import Any, Dict, List

from src.models import Listing, WatchQuery


def format_listing_summary(listing: Listing) -> Dict[str, Any]:
    return {
        "id": listing.id,
        "title": listing.title,
        "url": listing.url,
        "created": listing.created.isoformat() if listing.created else None,
        "votes": listing.votes,
        "views": listing.views,
        "commentCount": listing.comment_count,
        "category": listing.category,
    }


def format_watch_query_payload(query: WatchQuery, listings: List[Listing]) -> Dict[str, Any]:
    """Webhook body for one watch query run.

    Returns:
        dict with keys "queryName", "queryId", "matchCount" and "matches".
    """
    return {
        "queryName": query.name,
        "queryId": query.id,
        "matchCount": len(listings),
        "matches": [format_listing_summary(listing) for listing in listings],
    }
