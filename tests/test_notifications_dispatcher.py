from unittest.mock import MagicMock, patch

from conftest import make_listing, make_watch_query
from sqlalchemy.exc import OperationalError

from src.models.notification_log import DeliveryStatus, NotificationLog
from src.notifications.dispatcher import WebhookDispatcher
from src.notifications.webhook import DeliveryResult


def _sender(result=None, error=None):
    sender = MagicMock()
    if error is not None:
        sender.send.side_effect = error
    else:
        sender.send.return_value = result
    return sender


class TestWebhookDispatcher:
    @patch("src.notifications.dispatcher.get_settings")
    def test_dispatch_disabled(self, mock_settings, db_session):
        mock_settings.return_value = MagicMock(notification_enabled=False)
        query = make_watch_query(db_session)
        listing = make_listing(db_session, title="Nintendo Switch")
        sender = _sender(DeliveryResult(ok=True, status_code=200))

        result = WebhookDispatcher(db_session, sender=sender).dispatch(query, [listing])

        assert result is False
        sender.send.assert_not_called()
        assert db_session.query(NotificationLog).count() == 0

    @patch("src.notifications.dispatcher.get_settings")
    def test_dispatch_without_listings(self, mock_settings, db_session):
        mock_settings.return_value = MagicMock(notification_enabled=True)
        sender = _sender(DeliveryResult(ok=True, status_code=200))

        result = WebhookDispatcher(db_session, sender=sender).dispatch(
            make_watch_query(db_session), []
        )

        assert result is False
        sender.send.assert_not_called()

    @patch("src.notifications.dispatcher.get_settings")
    def test_dispatch_success(self, mock_settings, db_session):
        mock_settings.return_value = MagicMock(notification_enabled=True)
        query = make_watch_query(db_session, webhook_url="https://hooks.example.com/x")
        listings = [
            make_listing(db_session, title="Nintendo Switch", url="https://x.test/1"),
            make_listing(db_session, title="Nintendo amiibo", url="https://x.test/2"),
        ]
        sender = _sender(DeliveryResult(ok=True, status_code=200))

        result = WebhookDispatcher(db_session, sender=sender).dispatch(query, listings)

        assert result is True
        url, payload = sender.send.call_args.args
        assert url == "https://hooks.example.com/x"
        assert payload["queryId"] == query.id
        assert payload["matchCount"] == 2

        log = db_session.query(NotificationLog).one()
        assert log.watch_query_id == query.id
        assert log.match_count == 2
        assert log.status == DeliveryStatus.sent
        assert log.error is None

    @patch("src.notifications.dispatcher.get_settings")
    def test_dispatch_failure_is_recorded(self, mock_settings, db_session):
        mock_settings.return_value = MagicMock(notification_enabled=True)
        query = make_watch_query(db_session)
        listing = make_listing(db_session, title="Nintendo Switch")
        sender = _sender(DeliveryResult(ok=False, status_code=500, error="HTTP 500"))

        result = WebhookDispatcher(db_session, sender=sender).dispatch(query, [listing])

        assert result is False
        log = db_session.query(NotificationLog).one()
        assert log.status == DeliveryStatus.failed
        assert log.error == "HTTP 500"

    @patch("src.notifications.dispatcher.get_settings")
    def test_sender_exception_is_contained(self, mock_settings, db_session):
        mock_settings.return_value = MagicMock(notification_enabled=True)
        query = make_watch_query(db_session)
        listing = make_listing(db_session, title="Nintendo Switch")
        sender = _sender(error=RuntimeError("boom"))

        result = WebhookDispatcher(db_session, sender=sender).dispatch(query, [listing])

        assert result is False
        log = db_session.query(NotificationLog).one()
        assert log.status == DeliveryStatus.failed
        assert log.error == "boom"

    @patch("src.notifications.dispatcher.get_settings")
    def test_log_write_failure_is_contained(self, mock_settings, db_session):
        mock_settings.return_value = MagicMock(notification_enabled=True)
        query = make_watch_query(db_session)
        listing = make_listing(db_session, title="Nintendo Switch")
        sender = _sender(DeliveryResult(ok=True, status_code=200))
        dispatcher = WebhookDispatcher(db_session, sender=sender)

        with patch.object(
            db_session, "commit", side_effect=OperationalError("INSERT", {}, Exception("locked"))
        ):
            assert dispatcher.dispatch(query, [listing]) is True
