from src.models.listing import Listing
from src.models.notification_log import DeliveryStatus, NotificationLog
from src.models.watch_query import WatchQuery

__all__ = [
    "DeliveryStatus",
    "Listing",
    "NotificationLog",
    "WatchQuery",
]
