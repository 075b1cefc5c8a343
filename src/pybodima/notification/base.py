"""Device notification and calendar service interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..models import CalendarEvent, ScheduledNotification


class NotificationService(ABC):
    """Local, time-based notifications delivered even when the app is suspended.

    Implementations raise ``PermissionDeniedError`` or ``NotificationError``
    when a request cannot be honored.
    """

    @abstractmethod
    async def request_authorization(self) -> bool:
        """Ask the user for permission to show alerts."""

    @abstractmethod
    async def add(self, notification: ScheduledNotification) -> None:
        """Schedule a one-shot alert, replacing any with the same identifier."""

    @abstractmethod
    async def remove_pending(self, identifiers: Sequence[str]) -> None:
        """Remove alerts that have not been delivered yet."""


class CalendarService(ABC):
    """Calendar store used to record the payment deadline.

    Implementations raise ``PermissionDeniedError`` or ``CalendarError``.
    """

    @abstractmethod
    async def request_access(self) -> bool:
        """Ask the user for permission to write events."""

    @abstractmethod
    async def save_event(self, event: CalendarEvent) -> None:
        """Persist a single event."""
