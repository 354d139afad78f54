from __future__ import annotations

from typing import List, Optional

from bs4 import BeautifulSoup, Tag
from loguru import logger

from src.crawlers.base import BaseCrawler, ListingRecord
from src.crawlers.utils import (
    element_text,
    fetch_page,
    get_browser_headers,
    parse_int_safe,
    read_time,
    to_absolute_url,
)
from src.models.base import utcnow
from src.models.listing import DEFAULT_CATEGORY


class RedFlagDealsCrawler(BaseCrawler):
    """Hot Deals "Trending" list on forums.redflagdeals.com."""

    source_name = "RedFlagDeals"
    base_url = "https://forums.redflagdeals.com"
    list_url = f"{base_url}/hot-deals-f9/trending/"

    # 只取 li.topic，避開廣告與其他容器
    TOPIC_SELECTOR = "ul.topiclist.topics li.topic"

    def fetch_listings(self) -> List[ListingRecord]:
        soup = fetch_page(
            self.list_url,
            headers=get_browser_headers(referer=f"{self.base_url}/hot-deals-f9/"),
        )
        return self.parse_listings(soup)

    def parse_listings(self, soup: BeautifulSoup) -> List[ListingRecord]:
        topics = soup.select(self.TOPIC_SELECTOR)
        if not topics:
            logger.warning("No li.topic items found; the site structure may have changed")
            return []

        records = []
        for topic in topics:
            try:
                record = self._parse_topic(topic)
            except Exception as e:
                logger.error(f"Error parsing a topic item: {e}")
                continue
            if record is not None:
                records.append(record)
        return records

    def _parse_topic(self, topic: Tag) -> Optional[ListingRecord]:
        link = topic.select_one("h3.thread_title a.thread_title_link")
        if link is None:
            return None
        title = element_text(topic, "h3.thread_title a.thread_title_link")
        url = to_absolute_url(self.base_url, link.get("href"))
        if not title or not url:
            return None

        now = utcnow()
        created = read_time(topic, ".thread_outer_header .author_info time") or read_time(
            topic, ".thread_inner_footer .author_info time"
        )
        votes, views, comment_count, last_activity = self._extract_stats(topic)

        image = topic.select_one(".thread_image img")
        thread_id = (topic.get("data-thread-id") or "").strip()

        return ListingRecord(
            url=url,
            title=title,
            category=element_text(topic, ".thread_inner_header .thread_category")
            or DEFAULT_CATEGORY,
            created=created or now,
            last_activity=last_activity or now,
            votes=votes,
            views=views,
            comment_count=comment_count,
            dealer_name=element_text(topic, ".thread_inner_header .thread_dealer span") or None,
            savings_text=element_text(topic, ".thread_inner_header .savings") or None,
            source_thread_id=thread_id or None,
            image_url=to_absolute_url(self.base_url, image.get("src")) if image else None,
        )

    def _extract_stats(self, topic: Tag):
        """Counters from the inner footer, falling back to the outer footer."""
        source = topic.select_one(".thread_info .thread_inner_footer") or topic.select_one(
            ".thread_outer_footer"
        )
        if source is None:
            source = topic

        votes = parse_int_safe(element_text(source, ".votes.thread_stat span"))
        comment_count = parse_int_safe(element_text(source, ".posts.thread_stat span"))
        views = parse_int_safe(element_text(source, ".views.thread_stat"))
        last_activity = read_time(source, ".last_post time") or read_time(
            topic, ".last_post time"
        )
        return votes, views, comment_count, last_activity
