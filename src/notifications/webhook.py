from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from src.config import get_settings


@dataclass
class DeliveryResult:
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class WebhookSender:
    """POST JSON payloads to user-supplied webhook URLs."""

    def __init__(self, timeout: Optional[float] = None):
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.webhook_timeout

    def send(self, url: str, payload: Dict[str, Any]) -> DeliveryResult:
        """Send a payload to a webhook.

        Args:
            url: Destination URL, validated when the watch query was saved.
            payload: JSON-serializable body.

        Returns:
            DeliveryResult describing the outcome; never raises for HTTP or
            network failures.
        """
        try:
            # Redirects are not followed: a 3xx could point anywhere.
            with httpx.Client(timeout=self.timeout, follow_redirects=False) as client:
                response = client.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()

            logger.info(f"Webhook delivered to {url} ({response.status_code})")
            return DeliveryResult(ok=True, status_code=response.status_code)
        except httpx.HTTPStatusError as e:
            logger.error(f"Webhook error from {url}: {e.response.status_code}")
            return DeliveryResult(
                ok=False,
                status_code=e.response.status_code,
                error=f"HTTP {e.response.status_code}",
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Webhook request to {url} failed: {e}")
            return DeliveryResult(ok=False, error=str(e) or e.__class__.__name__)
