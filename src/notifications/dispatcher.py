from __future__ import annotations

from typing import List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.config import get_settings
from src.models import DeliveryStatus, Listing, NotificationLog, WatchQuery
from src.notifications.formatter import format_watch_query_payload
from src.notifications.webhook import DeliveryResult, WebhookSender

MAX_ERROR_LENGTH = 500


class WebhookDispatcher:
    """Best-effort delivery of watch query matches.

    Failures are logged and recorded in ``notification_logs``; nothing is
    retried and nothing is raised to the caller.
    """

    def __init__(self, session: Session, sender: Optional[WebhookSender] = None):
        self.session = session
        self.settings = get_settings()
        self.sender = sender or WebhookSender()

    def _log_delivery(self, query: WatchQuery, match_count: int, result: DeliveryResult) -> None:
        """Record the delivery outcome."""
        log = NotificationLog(
            watch_query_id=query.id,
            match_count=match_count,
            status=DeliveryStatus.sent if result.ok else DeliveryStatus.failed,
            error=(result.error or "")[:MAX_ERROR_LENGTH] or None,
        )
        try:
            self.session.add(log)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Could not record delivery for query {query.id}: {e}")

    def dispatch(self, query: WatchQuery, listings: List[Listing]) -> bool:
        """Send matches to the query's webhook.

        Returns:
            True if the webhook accepted the payload, False otherwise.
        """
        if not listings:
            return False

        if not self.settings.notification_enabled:
            logger.info("Notifications are disabled, skipping dispatch")
            return False

        payload = format_watch_query_payload(query, listings)
        try:
            result = self.sender.send(query.webhook_url, payload)
        except Exception as e:
            result = DeliveryResult(ok=False, error=str(e) or e.__class__.__name__)

        if result.ok:
            logger.info(
                f"Sent webhook notification for query \"{query.name}\" "
                f"with {len(listings)} matches"
            )
        else:
            logger.error(
                f"Failed to send webhook for query \"{query.name}\": {result.error}"
            )
        self._log_delivery(query, len(listings), result)
        return result.ok
