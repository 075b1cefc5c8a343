from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import UTC, date, datetime, timedelta
from typing import Any

import pytest

from pybodima.exceptions import PermissionDeniedError
from pybodima.models import (
    AvailabilityResult,
    CalendarEvent,
    HabitationRef,
    ReservationRecord,
    ReservedDateRange,
    ScheduledNotification,
)
from pybodima.notification.base import CalendarService, NotificationService
from pybodima.notification.loader import clear_alert_copy_cache

START = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


async def settle(rounds: int = 25) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class VirtualTime:
    """Clock and sleep pair advanced by hand."""

    def __init__(self, start: datetime = START) -> None:
        self._start = start
        self.elapsed = 0.0
        self._sleepers: list[tuple[float, asyncio.Future[None]]] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self.elapsed)

    async def sleep(self, delay: float) -> None:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.elapsed + delay, future))
        await future

    @property
    def sleeping(self) -> int:
        return sum(1 for _, future in self._sleepers if not future.done())

    def skew(self, seconds: float) -> None:
        """Move the wall clock without waking any sleeper."""
        self._start += timedelta(seconds=seconds)

    async def advance(self, seconds: float, step: float = 1.0) -> None:
        await settle()
        target = self.elapsed + seconds
        while self.elapsed < target - 1e-9:
            self.elapsed = min(target, self.elapsed + step)
            due: list[asyncio.Future[None]] = []
            waiting: list[tuple[float, asyncio.Future[None]]] = []
            for wake_at, future in self._sleepers:
                if future.done():
                    continue
                if wake_at <= self.elapsed + 1e-9:
                    due.append(future)
                else:
                    waiting.append((wake_at, future))
            self._sleepers = waiting
            for future in due:
                future.set_result(None)
            await settle()


class FakeNotifications(NotificationService):
    def __init__(self, *, granted: bool = True, deny_with_error: bool = False) -> None:
        self.granted = granted
        self.deny_with_error = deny_with_error
        self.authorization_requests = 0
        self.pending: dict[str, ScheduledNotification] = {}
        self.added: list[ScheduledNotification] = []
        self.removed: list[list[str]] = []
        self.add_error: Exception | None = None

    async def request_authorization(self) -> bool:
        self.authorization_requests += 1
        if self.deny_with_error:
            raise PermissionDeniedError("Notifications are disabled.")
        return self.granted

    async def add(self, notification: ScheduledNotification) -> None:
        if self.add_error is not None:
            raise self.add_error
        self.added.append(notification)
        self.pending[notification.identifier] = notification

    async def remove_pending(self, identifiers: Sequence[str]) -> None:
        self.removed.append(list(identifiers))
        for identifier in identifiers:
            self.pending.pop(identifier, None)


class FakeCalendar(CalendarService):
    def __init__(self, *, granted: bool = True) -> None:
        self.granted = granted
        self.access_requests = 0
        self.events: list[CalendarEvent] = []
        self.save_error: Exception | None = None

    async def request_access(self) -> bool:
        self.access_requests += 1
        return self.granted

    async def save_event(self, event: CalendarEvent) -> None:
        if self.save_error is not None:
            raise self.save_error
        self.events.append(event)


def make_record(
    reservation_id: str = "r1",
    *,
    status: str = "pending",
    habitation: Any = None,
    user_id: str | None = "u1",
) -> ReservationRecord:
    return ReservationRecord(
        id=reservation_id,
        user_id=user_id,
        habitation=habitation if habitation is not None else HabitationRef(id="h1"),
        check_in_date="2024-03-10T00:00:00Z",
        check_out_date="2024-03-13T00:00:00Z",
        reserved_date_time=None,
        reservation_end_date_time=None,
        status=status,
        payment_deadline=None,
        is_payment_completed=status == "confirmed",
        total_days=3,
        total_amount=15000,
    )


class FakeReservationApi:
    """Stands in for ReservationApiClient in reconciler and manager tests."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.errors: dict[str, list[Exception]] = {}
        self.expiration_status = "pending"
        self.expiration_returns_record = True
        self.conflicts: list[ReservedDateRange] = []
        self.reserved_dates: list[ReservedDateRange] = []
        self._next_id = 0
        self.gate: asyncio.Event | None = None

    def fail(self, method: str, *errors: Exception) -> None:
        self.errors.setdefault(method, []).extend(errors)

    def called(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if method == "create_reservation" and self.gate is not None:
            await self.gate.wait()
        queued = self.errors.get(method)
        if queued:
            raise queued.pop(0)

    async def create_reservation(
        self,
        user_id: str,
        habitation_id: str,
        check_in: date,
        check_out: date,
        reserved_from: datetime,
        reserved_until: datetime,
    ) -> ReservationRecord:
        await self._enter(
            "create_reservation",
            user_id,
            habitation_id,
            check_in,
            check_out,
            reserved_from,
            reserved_until,
        )
        self._next_id += 1
        return make_record(f"r{self._next_id}", user_id=user_id)

    async def get_reservation(self, reservation_id: str) -> ReservationRecord:
        await self._enter("get_reservation", reservation_id)
        return make_record(reservation_id, status=self.expiration_status)

    async def confirm_reservation(self, reservation_id: str) -> ReservationRecord | None:
        await self._enter("confirm_reservation", reservation_id)
        return make_record(reservation_id, status="confirmed")

    async def check_expiration(self, reservation_id: str) -> ReservationRecord | None:
        await self._enter("check_expiration", reservation_id)
        if not self.expiration_returns_record:
            return None
        return make_record(reservation_id, status=self.expiration_status)

    async def check_availability(
        self,
        habitation_id: str,
        check_in: date,
        check_out: date,
    ) -> AvailabilityResult:
        await self._enter("check_availability", habitation_id, check_in, check_out)
        return AvailabilityResult(
            is_available=not self.conflicts,
            conflicting_reservations=list(self.conflicts),
        )

    async def get_reserved_dates(self, habitation_id: str) -> list[ReservedDateRange]:
        await self._enter("get_reserved_dates", habitation_id)
        return list(self.reserved_dates)


@pytest.fixture(autouse=True)
def _reset_alert_copy_cache():
    clear_alert_copy_cache()
    yield
    clear_alert_copy_cache()


@pytest.fixture
def virtual_time() -> VirtualTime:
    return VirtualTime()


@pytest.fixture
def notifications() -> FakeNotifications:
    return FakeNotifications()


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def fake_api() -> FakeReservationApi:
    return FakeReservationApi()
