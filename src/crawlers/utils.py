import random
import re
import time
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup, Tag
from loguru import logger

from src.config import get_settings

settings = get_settings()

USER_AGENTS = [
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15"
    ),
]


def get_browser_headers(referer: Optional[str] = None) -> dict:
    headers = {
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;q=0.9,"
            "image/avif,image/webp,*/*;q=0.8"
        ),
        "Accept-Language": "en-CA,en;q=0.9",
        "Cache-Control": "no-cache",
    }
    if referer:
        headers["Referer"] = referer
    return headers


def fetch_page(
    url: str,
    headers: Optional[dict] = None,
    retries: Optional[int] = None,
    timeout: Optional[int] = None,
) -> BeautifulSoup:
    """Fetch and parse an HTML page.

    Raises the last ``requests.RequestException`` once every attempt failed.
    """
    if retries is None:
        retries = settings.crawler_max_retries
    if timeout is None:
        timeout = settings.fetch_timeout
    retries = max(1, retries)

    for attempt in range(retries):
        try:
            response = requests.get(
                url, headers=headers or get_browser_headers(), timeout=timeout
            )
            response.raise_for_status()
            return BeautifulSoup(response.text, "lxml")
        except requests.RequestException as e:
            logger.warning(f"Attempt {attempt + 1}/{retries} failed for {url}: {e}")
            if attempt < retries - 1:
                time.sleep(2 ** attempt)
            else:
                logger.error(f"Failed to fetch {url} after {retries} attempts")
                raise


def clean_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def element_text(root: Tag, selector: str) -> str:
    el = root.select_one(selector)
    return clean_text(el.get_text()) if el else ""


def parse_int_safe(text: Optional[str]) -> int:
    """Parse a counter like ``"1,234"`` or ``"-3"``; 0 on failure, never negative."""
    if not text:
        return 0
    digits = re.sub(r"[^0-9-]+", "", text)
    if digits in ("", "-"):
        return 0
    try:
        return max(0, int(digits))
    except ValueError:
        return 0


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 ``datetime`` attribute into naive UTC."""
    if not value:
        return None
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def read_time(root: Tag, selector: str) -> Optional[datetime]:
    el = root.select_one(selector)
    if el is None:
        return None
    return parse_datetime(el.get("datetime"))


def to_absolute_url(base_url: str, href: Optional[str]) -> str:
    if not href:
        return ""
    return urljoin(base_url, href.strip())
