"""Public data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import TypeAlias


class ReservationStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not ReservationStatus.PENDING


class HoldState(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class EventKind(StrEnum):
    STARTED = "started"
    TICK = "tick"
    HOLD_REGISTERED = "hold_registered"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    RESET = "reset"
    SYNC_FAILED = "sync_failed"


@dataclass(frozen=True, slots=True)
class Habitation:
    id: str
    name: str
    price: int
    is_reserved: bool = False
    owner_id: str | None = None


@dataclass(frozen=True, slots=True)
class HabitationRef:
    id: str


HabitationField: TypeAlias = Habitation | HabitationRef


@dataclass(frozen=True, slots=True)
class PendingReservation:
    hold_id: str
    habitation_id: str
    habitation_name: str
    check_in_date: date
    check_out_date: date
    price_per_unit: int
    total_days: int
    total_amount: int
    status: ReservationStatus
    created_at: datetime
    payment_deadline: datetime
    id: str | None = None
    user_id: str | None = None
    calendar_event_created: bool = False


@dataclass(frozen=True, slots=True)
class ScheduledNotification:
    identifier: str
    hold_id: str
    fire_offset: int
    title: str
    body: str


@dataclass(frozen=True, slots=True)
class CalendarEvent:
    title: str
    notes: str
    start: datetime
    end: datetime
    alarm_offset: int


@dataclass(frozen=True, slots=True)
class ReservationRecord:
    id: str
    user_id: str | None
    habitation: HabitationField | None
    check_in_date: str
    check_out_date: str
    reserved_date_time: str | None
    reservation_end_date_time: str | None
    status: str
    payment_deadline: str | None
    is_payment_completed: bool
    total_days: int | None
    total_amount: int | None


@dataclass(frozen=True, slots=True)
class ReservedDateRange:
    id: str
    check_in_date: str
    check_out_date: str
    status: str
    user_id: str | None = None


@dataclass(frozen=True, slots=True)
class AvailabilityResult:
    is_available: bool
    conflicting_reservations: list[ReservedDateRange] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class AvailableDateRange:
    start_date: str
    end_date: str


@dataclass(frozen=True, slots=True)
class HabitationAvailability:
    available_dates: list[AvailableDateRange]
    reserved_dates: list[ReservedDateRange]


@dataclass(frozen=True, slots=True)
class ReservationEvent:
    kind: EventKind
    reservation: PendingReservation | None
    error: Exception | None = None
    remaining: int | None = None
