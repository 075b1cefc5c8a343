"""Reservation hold state machine."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Coroutine
from dataclasses import replace
from datetime import UTC, date, datetime, timedelta
from typing import Any, TypeVar

from .availability import AvailabilityReconciler
from .exceptions import (
    AlreadyInProgressError,
    ExpiredError,
    InvalidTransitionError,
    PyBodimaError,
)
from .models import (
    EventKind,
    Habitation,
    HoldState,
    PendingReservation,
    ReservationEvent,
    ReservationStatus,
)
from .notification.dispatcher import NotificationDispatcher
from .settings import HoldSettings
from .timer import CountdownTimer, SleepFunc
from .util import compute_stay_totals, validate_stay_dates

_LOGGER = logging.getLogger(__name__)

Listener = Callable[[ReservationEvent], None]
NowFunc = Callable[[], datetime]
T = TypeVar("T")

_SERVER_TERMINAL_STATUSES = frozenset({"expired", "cancelled"})


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReservationStateManager:
    """Single source of truth for the in-flight reservation hold.

    ``idle -> pending -> confirmed | expired | cancelled``, and back to ``idle``
    through ``reset()``. Transitions are committed locally first; the alert
    channels and the backend are brought in line afterwards and their failures
    are published as ``sync_failed`` events instead of being raised.

    All methods must be called from the event loop that owns the manager.
    """

    def __init__(
        self,
        reconciler: AvailabilityReconciler,
        dispatcher: NotificationDispatcher | None = None,
        *,
        settings: HoldSettings | None = None,
        timer: CountdownTimer | None = None,
        clock: NowFunc | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self._settings = settings or HoldSettings()
        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._reconciler = reconciler
        self._dispatcher = dispatcher or NotificationDispatcher(
            calendar_alarm_offset=self._settings.calendar_alarm_offset,
        )
        self._timer = timer or CountdownTimer(
            tick_interval=self._settings.tick_interval,
            sleep=self._sleep,
        )
        self._clock: NowFunc = clock or _utcnow
        self._reservation: PendingReservation | None = None
        self._closing = False
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._registrations: dict[str, asyncio.Task[str | None]] = {}
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def settings(self) -> HoldSettings:
        return self._settings

    @property
    def timer(self) -> CountdownTimer:
        return self._timer

    @property
    def reservation(self) -> PendingReservation | None:
        return self._reservation

    @property
    def state(self) -> HoldState:
        if self._reservation is None:
            return HoldState.IDLE
        return HoldState(self._reservation.status.value)

    @property
    def is_reservation_in_progress(self) -> bool:
        return self.state is HoldState.PENDING

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; the returned callable unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start_reservation_flow(
        self,
        habitation: Habitation,
        check_in: date,
        check_out: date,
        *,
        price_per_unit: int | None = None,
        user_id: str | None = None,
    ) -> PendingReservation:
        """Open a hold on ``habitation`` and start its countdown."""
        self._require_idle()
        price = habitation.price if price_per_unit is None else price_per_unit
        now = self._clock()
        check_in_day, check_out_day = validate_stay_dates(check_in, check_out, today=now)
        total_days, total_amount = compute_stay_totals(check_in_day, check_out_day, price)
        hold_duration = self._settings.hold_duration
        reservation = PendingReservation(
            hold_id=uuid.uuid4().hex,
            habitation_id=habitation.id,
            habitation_name=habitation.name,
            check_in_date=check_in_day,
            check_out_date=check_out_day,
            price_per_unit=price,
            total_days=total_days,
            total_amount=total_amount,
            status=ReservationStatus.PENDING,
            created_at=now,
            payment_deadline=now + timedelta(seconds=max(0, hold_duration)),
            user_id=user_id,
        )
        hold_id = reservation.hold_id
        self._reservation = reservation
        self._closing = False
        self._timer.start(
            hold_duration,
            on_tick=self._handle_tick,
            on_expired=self._handle_timer_expired,
        )
        _LOGGER.debug("Hold %s started for habitation %s", hold_id, habitation.id)
        self._emit(EventKind.STARTED)

        await self._dispatcher.schedule_reminder(
            hold_id,
            hold_duration,
            self._settings.reminder_lead_time,
        )
        await self._dispatcher.schedule_expiry_alert(hold_id, hold_duration)
        calendar_created = await self._dispatcher.create_calendar_hold_event(
            hold_id,
            habitation.name,
            reservation.payment_deadline,
            now=now,
        )
        current = self._current(hold_id)
        if current is not None and calendar_created:
            self._reservation = current = replace(current, calendar_event_created=True)
        if current is None or current.status is not ReservationStatus.PENDING:
            # The hold ended while its alerts were being scheduled.
            await self._dispatcher.cancel_all(hold_id)
            return current or reservation

        if user_id:
            self._registrations[hold_id] = self._spawn(self._register_hold(hold_id))
            if self._settings.server_check_interval is not None:
                self._poll_task = asyncio.get_running_loop().create_task(
                    self._poll_server(hold_id)
                )
        return current

    def update_reservation_dates(self, check_in: date, check_out: date) -> PendingReservation:
        """Change the stay; the countdown keeps running."""
        reservation = self._require_pending()
        check_in_day, check_out_day = validate_stay_dates(
            check_in,
            check_out,
            today=self._clock(),
        )
        total_days, total_amount = compute_stay_totals(
            check_in_day,
            check_out_day,
            reservation.price_per_unit,
        )
        self._reservation = replace(
            reservation,
            check_in_date=check_in_day,
            check_out_date=check_out_day,
            total_days=total_days,
            total_amount=total_amount,
        )
        return self._reservation

    async def confirm(self) -> PendingReservation:
        """Commit the hold after payment.

        The deadline wins over the user: once the countdown reached zero, or
        the clock passed ``payment_deadline``, this raises ``ExpiredError``.
        """
        reservation = self._reservation
        if reservation is None:
            raise InvalidTransitionError("No reservation is in progress.")
        if reservation.status is ReservationStatus.EXPIRED:
            raise ExpiredError("Reservation hold has expired.")
        if reservation.status is not ReservationStatus.PENDING or self._closing:
            raise InvalidTransitionError(
                f"Cannot confirm a reservation that is {reservation.status.value}."
            )
        if self._timer.remaining <= 0 or self._clock() >= reservation.payment_deadline:
            if self._timer.is_active and self._timer.remaining > 0:
                # The countdown lags the wall clock, e.g. after the loop was
                # suspended; expire here since its zero tick has not come yet.
                self.expire()
            raise ExpiredError("Reservation hold has expired.")

        await self._close_hold(reservation.hold_id)
        confirmed = self._transition(ReservationStatus.CONFIRMED)
        _LOGGER.debug("Hold %s confirmed", confirmed.hold_id)
        self._emit(EventKind.CONFIRMED)
        await self._reconcile_confirmed(confirmed)
        return self._current(confirmed.hold_id) or confirmed

    def expire(self) -> None:
        """Expire the pending hold; repeated calls are ignored."""
        reservation = self._reservation
        if reservation is None:
            raise InvalidTransitionError("No reservation is in progress.")
        if reservation.status is ReservationStatus.EXPIRED:
            return
        if reservation.status is not ReservationStatus.PENDING or self._closing:
            raise InvalidTransitionError(
                f"Cannot expire a reservation that is {reservation.status.value}."
            )
        delivered = self._timer.has_expired
        self._timer.stop()
        self._stop_polling()
        expired = self._transition(ReservationStatus.EXPIRED)
        _LOGGER.debug("Hold %s expired", expired.hold_id)
        self._emit(EventKind.EXPIRED)
        self._spawn(self._release(expired, cancel_alerts=not delivered))

    async def cancel(self) -> PendingReservation:
        """Abandon the pending hold and release the habitation."""
        reservation = self._reservation
        if reservation is None:
            raise InvalidTransitionError("No reservation is in progress.")
        if reservation.status is ReservationStatus.CANCELLED:
            return reservation
        if reservation.status is not ReservationStatus.PENDING or self._closing:
            raise InvalidTransitionError(
                f"Cannot cancel a reservation that is {reservation.status.value}."
            )
        await self._close_hold(reservation.hold_id)
        cancelled = self._transition(ReservationStatus.CANCELLED)
        _LOGGER.debug("Hold %s cancelled", cancelled.hold_id)
        self._emit(EventKind.CANCELLED)
        await self._release(cancelled, cancel_alerts=False)
        return self._current(cancelled.hold_id) or cancelled

    def reset(self) -> None:
        """Return to idle once the hold reached a terminal state."""
        reservation = self._reservation
        if reservation is None:
            return
        if reservation.status is ReservationStatus.PENDING:
            raise InvalidTransitionError("Confirm or cancel the pending reservation first.")
        self._timer.stop()
        self._reservation = None
        _LOGGER.debug("Hold %s cleared", reservation.hold_id)
        self._emit(EventKind.RESET)

    async def check_server_expiration(self) -> bool:
        """Apply the server's deadline; return whether the hold was expired."""
        reservation = self._reservation
        if reservation is None or reservation.status is not ReservationStatus.PENDING:
            return False
        if reservation.id is None:
            return False
        try:
            record = await self._reconciler.check_expiration(reservation.id)
        except PyBodimaError as exc:
            self._report_sync_failure(reservation.hold_id, "expiration check", exc)
            return False
        if record.status not in _SERVER_TERMINAL_STATUSES:
            return False
        current = self._current(reservation.hold_id)
        if current is None or current.status is not ReservationStatus.PENDING or self._closing:
            return False
        _LOGGER.debug("Server reports hold %s as %s", reservation.hold_id, record.status)
        self.expire()
        return True

    async def drain(self) -> None:
        """Wait for background reconciliation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def aclose(self) -> None:
        self._timer.stop()
        self._stop_polling()
        await self.drain()

    async def _close_hold(self, hold_id: str) -> None:
        # Alerts are cancelled before the terminal state is published.
        self._closing = True
        self._timer.stop()
        self._stop_polling()
        try:
            await self._dispatcher.cancel_all(hold_id)
        finally:
            self._closing = False

    def _transition(self, status: ReservationStatus) -> PendingReservation:
        reservation = self._reservation
        if reservation is None or reservation.status is not ReservationStatus.PENDING:
            raise InvalidTransitionError("Only a pending reservation can change status.")
        self._reservation = replace(reservation, status=status)
        return self._reservation

    async def _reconcile_confirmed(self, snapshot: PendingReservation) -> None:
        hold_id = snapshot.hold_id
        reservation = await self._with_server_id(snapshot)
        if reservation.id is None and reservation.user_id:
            # Keep the server id even if the confirmation step fails below.
            try:
                created = await self._reconciler.register_hold(reservation)
            except PyBodimaError as exc:
                self._report_sync_failure(hold_id, "registration", exc)
                return
            reservation = replace(reservation, id=created.id)
            self._store_server_id(hold_id, created.id)
        try:
            await self._reconciler.on_confirmed(reservation)
        except PyBodimaError as exc:
            self._report_sync_failure(hold_id, "confirmation", exc)

    async def _release(self, snapshot: PendingReservation, *, cancel_alerts: bool) -> None:
        hold_id = snapshot.hold_id
        if cancel_alerts:
            await self._dispatcher.cancel_all(hold_id)
        else:
            self._dispatcher.forget(hold_id)
        reservation = await self._with_server_id(snapshot)
        try:
            await self._reconciler.on_expired_or_cancelled(reservation)
        except PyBodimaError as exc:
            self._report_sync_failure(hold_id, "release", exc)

    async def _register_hold(self, hold_id: str) -> str | None:
        reservation = self._current(hold_id)
        if reservation is None:
            return None
        try:
            record = await self._reconciler.register_hold(reservation)
        except PyBodimaError as exc:
            self._report_sync_failure(hold_id, "registration", exc)
            return None
        _LOGGER.debug("Hold %s registered as reservation %s", hold_id, record.id)
        current = self._store_server_id(hold_id, record.id)
        if current is not None and current.status is ReservationStatus.PENDING:
            self._emit(EventKind.HOLD_REGISTERED)
        return record.id

    def _store_server_id(self, hold_id: str, server_id: str) -> PendingReservation | None:
        current = self._current(hold_id)
        if current is not None and current.id is None:
            self._reservation = current = replace(current, id=server_id)
        return current

    async def _with_server_id(self, snapshot: PendingReservation) -> PendingReservation:
        """Latest view of a finished hold, including its server id once registered."""
        hold_id = snapshot.hold_id
        task = self._registrations.pop(hold_id, None)
        server_id = await task if task is not None else None
        reservation = self._current(hold_id) or snapshot
        if reservation.id is None and server_id is not None:
            reservation = replace(reservation, id=server_id)
        return reservation

    async def _poll_server(self, hold_id: str) -> None:
        interval = self._settings.server_check_interval
        if interval is None:
            return
        while True:
            await self._sleep(interval)
            current = self._current(hold_id)
            if current is None or current.status is not ReservationStatus.PENDING:
                return
            if await self.check_server_expiration():
                return

    def _stop_polling(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _handle_tick(self, remaining: int) -> None:
        self._emit(EventKind.TICK, remaining=remaining)

    def _handle_timer_expired(self) -> None:
        reservation = self._reservation
        if reservation is None or reservation.status is not ReservationStatus.PENDING:
            return
        if self._closing:
            return
        self.expire()

    def _current(self, hold_id: str) -> PendingReservation | None:
        reservation = self._reservation
        if reservation is None or reservation.hold_id != hold_id:
            return None
        return reservation

    def _require_idle(self) -> None:
        reservation = self._reservation
        if reservation is None:
            return
        if reservation.status is ReservationStatus.PENDING:
            raise AlreadyInProgressError("A reservation is already in progress.")
        raise InvalidTransitionError("Reset the finished reservation before starting another.")

    def _require_pending(self) -> PendingReservation:
        reservation = self._reservation
        if reservation is None:
            raise InvalidTransitionError("No reservation is in progress.")
        if reservation.status is not ReservationStatus.PENDING or self._closing:
            raise InvalidTransitionError(
                f"Cannot update a reservation that is {reservation.status.value}."
            )
        return reservation

    def _report_sync_failure(self, hold_id: str, step: str, exc: PyBodimaError) -> None:
        _LOGGER.warning("Hold %s %s failed: %s", hold_id, step, exc)
        self._emit(EventKind.SYNC_FAILED, error=exc)

    def _spawn(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _emit(
        self,
        kind: EventKind,
        *,
        error: Exception | None = None,
        remaining: int | None = None,
    ) -> None:
        event = ReservationEvent(
            kind=kind,
            reservation=self._reservation,
            error=error,
            remaining=remaining,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _LOGGER.exception("Listener failed on %s event", kind.value)
