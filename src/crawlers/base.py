from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from src.models import Listing
from src.stores.listings import upsert_listings

# 同一時間只允許一次抓取（定期排程與手動觸發共用）
_fetch_lock = threading.Lock()


class FetchInProgressError(RuntimeError):
    """Raised when a fetch is requested while another one is still running."""


@dataclass
class ListingRecord:
    url: str
    title: str
    created: datetime
    last_activity: datetime
    category: str = "Other"
    description: str = ""
    votes: int = 0
    views: int = 0
    comment_count: int = 0
    dealer_name: Optional[str] = None
    savings_text: Optional[str] = None
    source_thread_id: Optional[str] = None
    image_url: Optional[str] = None

    def to_row(self) -> dict:
        return asdict(self)


def dedupe_records(records: List[ListingRecord]) -> List[ListingRecord]:
    """Collapse records sharing a URL, keeping the first in document order."""
    seen = set()
    unique = []
    for record in records:
        if record.url in seen:
            continue
        seen.add(record.url)
        unique.append(record)
    return unique


class BaseCrawler(ABC):
    source_name: str
    base_url: str

    def __init__(self, db_session: Session):
        self.db = db_session

    @abstractmethod
    def fetch_listings(self) -> List[ListingRecord]:
        """抓取來源頁面並解析出所有 listing"""
        pass

    def run(self) -> List[Listing]:
        """Fetch, dedupe and upsert; returns only the newly inserted listings."""
        if not _fetch_lock.acquire(blocking=False):
            raise FetchInProgressError(f"A fetch for {self.source_name} is already running")

        try:
            logger.info(f"Starting fetch for {self.source_name}")
            try:
                records = dedupe_records(self.fetch_listings())
                if not records:
                    logger.warning(
                        f"Parsed zero listings from {self.source_name}; "
                        "the page structure may have changed"
                    )
                    return []
                new_listings = upsert_listings(self.db, records)
            except Exception as e:
                self.db.rollback()
                logger.error(f"Fetch failed for {self.source_name}: {e}")
                raise

            logger.info(
                f"Fetch complete for {self.source_name}: parsed {len(records)}, "
                f"inserted {len(new_listings)}"
            )
            return new_listings
        finally:
            _fetch_lock.release()
