"""Schedules and cancels the alerts that accompany a reservation hold."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from datetime import UTC, datetime

from ..exceptions import PermissionDeniedError, SideChannelError
from ..models import CalendarEvent, ScheduledNotification
from ..settings import DEFAULT_CALENDAR_ALARM_OFFSET
from .base import CalendarService, NotificationService
from .const import EXPIRY_IDENTIFIER, REMINDER_IDENTIFIER
from .loader import AlertCopy, load_alert_copy

_LOGGER = logging.getLogger(__name__)


class NotificationDispatcher:
    """Fan hold deadlines out to the notification and calendar channels.

    Both channels are optional and degrade independently. Permission denial
    and service failures are logged and swallowed here; nothing in this class
    raises into the reservation state machine.
    """

    def __init__(
        self,
        notifications: NotificationService | None = None,
        calendar: CalendarService | None = None,
        *,
        copy: AlertCopy | None = None,
        calendar_alarm_offset: int = DEFAULT_CALENDAR_ALARM_OFFSET,
    ) -> None:
        self._notifications = notifications
        self._calendar = calendar
        self._copy = copy
        self._calendar_alarm_offset = calendar_alarm_offset
        self._notifications_allowed: bool | None = None
        self._calendar_allowed: bool | None = None
        self._outstanding: dict[str, set[str]] = {}

    @property
    def copy(self) -> AlertCopy:
        if self._copy is None:
            self._copy = load_alert_copy()
        return self._copy

    def outstanding(self, hold_id: str) -> frozenset[str]:
        return frozenset(self._outstanding.get(hold_id, ()))

    async def schedule_reminder(
        self,
        hold_id: str,
        hold_duration: int,
        seconds_before_deadline: int,
        message: str | None = None,
    ) -> bool:
        """Schedule the payment reminder; return whether it was scheduled."""
        fire_offset = hold_duration - seconds_before_deadline
        if fire_offset <= 0:
            _LOGGER.debug("Hold %s reminder skipped, offset %s", hold_id, fire_offset)
            return False
        notification = ScheduledNotification(
            identifier=REMINDER_IDENTIFIER,
            hold_id=hold_id,
            fire_offset=fire_offset,
            title=self.copy.reminder.title,
            body=message or self.copy.reminder_body(seconds_before_deadline),
        )
        return await self._schedule(notification)

    async def schedule_expiry_alert(
        self,
        hold_id: str,
        hold_duration: int,
        message: str | None = None,
    ) -> bool:
        """Schedule the alert that fires exactly at the deadline."""
        if hold_duration <= 0:
            _LOGGER.debug("Hold %s expiry alert skipped, duration %s", hold_id, hold_duration)
            return False
        notification = ScheduledNotification(
            identifier=EXPIRY_IDENTIFIER,
            hold_id=hold_id,
            fire_offset=hold_duration,
            title=self.copy.expiry.title,
            body=message or self.copy.expiry.body,
        )
        return await self._schedule(notification)

    async def cancel_all(self, hold_id: str) -> None:
        identifiers = self._outstanding.pop(hold_id, None)
        if not identifiers or self._notifications is None:
            return
        try:
            await self._notifications.remove_pending(sorted(identifiers))
        except SideChannelError as exc:
            _LOGGER.warning("Hold %s notification removal failed: %s", hold_id, exc)
            return
        _LOGGER.debug("Hold %s notifications cancelled", hold_id)

    async def create_calendar_hold_event(
        self,
        hold_id: str,
        habitation_name: str,
        deadline: datetime,
        now: datetime | None = None,
    ) -> bool:
        """Write a best-effort calendar entry spanning now to the deadline."""
        if self._calendar is None:
            return False
        start = now or datetime.now(UTC)
        if deadline <= start:
            _LOGGER.debug("Hold %s calendar event skipped, deadline passed", hold_id)
            return False
        try:
            if not await self._calendar_permission():
                return False
            event = CalendarEvent(
                title=self.copy.calendar.title,
                notes=self.copy.calendar_notes(
                    habitation_name,
                    int((deadline - start).total_seconds()),
                ),
                start=start,
                end=deadline,
                alarm_offset=self._calendar_alarm_offset,
            )
            await self._calendar.save_event(event)
        except SideChannelError as exc:
            _LOGGER.warning("Hold %s calendar event not created: %s", hold_id, exc)
            return False
        _LOGGER.debug("Hold %s calendar event created", hold_id)
        return True

    async def _schedule(self, notification: ScheduledNotification) -> bool:
        if self._notifications is None:
            return False
        try:
            if not await self._notification_permission():
                return False
            await self._notifications.add(notification)
        except SideChannelError as exc:
            _LOGGER.warning(
                "Hold %s notification %s not scheduled: %s",
                notification.hold_id,
                notification.identifier,
                exc,
            )
            return False
        self._claim(notification)
        _LOGGER.debug(
            "Hold %s notification %s scheduled at +%ss",
            notification.hold_id,
            notification.identifier,
            notification.fire_offset,
        )
        return True

    def forget(self, hold_id: str) -> None:
        """Drop bookkeeping for alerts that were delivered rather than cancelled."""
        self._outstanding.pop(hold_id, None)

    def _claim(self, notification: ScheduledNotification) -> None:
        # Identifiers are shared across holds, so a new alert replaces an older hold's.
        for hold_id, identifiers in list(self._outstanding.items()):
            if hold_id == notification.hold_id:
                continue
            identifiers.discard(notification.identifier)
            if not identifiers:
                del self._outstanding[hold_id]
        self._outstanding.setdefault(notification.hold_id, set()).add(notification.identifier)

    async def _notification_permission(self) -> bool:
        if self._notifications_allowed is None:
            assert self._notifications is not None
            self._notifications_allowed = await self._request(
                self._notifications.request_authorization(), "notification"
            )
        return self._notifications_allowed

    async def _calendar_permission(self) -> bool:
        if self._calendar_allowed is None:
            assert self._calendar is not None
            self._calendar_allowed = await self._request(
                self._calendar.request_access(), "calendar"
            )
        return self._calendar_allowed

    async def _request(self, request: Awaitable[bool], channel: str) -> bool:
        try:
            granted = bool(await request)
        except PermissionDeniedError:
            granted = False
        if not granted:
            _LOGGER.warning("%s permission denied; continuing without it", channel.capitalize())
        return granted
