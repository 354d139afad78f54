from datetime import datetime

from src.models.notification_log import DeliveryStatus, NotificationLog


def test_create_notification_log(db_session):
    log = NotificationLog(watch_query_id="abc123", match_count=3, status=DeliveryStatus.sent)
    db_session.add(log)
    db_session.commit()

    assert log.id is not None
    assert log.status == DeliveryStatus.sent
    assert log.error is None
    assert isinstance(log.sent_at, datetime)


def test_notification_log_repr(db_session):
    log = NotificationLog(
        watch_query_id="abc123", match_count=2, status=DeliveryStatus.failed, error="HTTP 500"
    )
    db_session.add(log)
    db_session.commit()

    assert "abc123" in repr(log)
    assert "failed" in repr(log)


def test_logs_outlive_their_watch_query(db_session):
    """No foreign key: a log can reference a query id that no longer exists."""
    db_session.add(
        NotificationLog(watch_query_id="deleted-query", match_count=1, status=DeliveryStatus.sent)
    )
    db_session.commit()

    assert db_session.query(NotificationLog).count() == 1
