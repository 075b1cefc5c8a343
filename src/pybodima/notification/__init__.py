"""Hold notification channels."""

from .base import CalendarService, NotificationService
from .dispatcher import NotificationDispatcher
from .loader import AlertCopy, AlertText, load_alert_copy

__all__ = [
    "AlertCopy",
    "AlertText",
    "CalendarService",
    "NotificationDispatcher",
    "NotificationService",
    "load_alert_copy",
]
