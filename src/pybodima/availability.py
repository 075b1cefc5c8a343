"""Availability cache and reconciliation with the backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, replace
from datetime import date
from types import MappingProxyType
from typing import TypeVar

from .api.reservations import ReservationApiClient
from .exceptions import NetworkError, ValidationError
from .models import AvailabilityResult, PendingReservation, ReservationRecord, ReservedDateRange
from .timer import SleepFunc

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class AvailabilityEntry:
    habitation_id: str
    is_reserved: bool | None = None
    reserved_dates: tuple[ReservedDateRange, ...] = ()


class AvailabilityCache:
    """Habitation availability shared with the listing screens.

    Readers get immutable snapshots; every write swaps in a new mapping, so a
    snapshot handed out earlier never changes underneath its reader.
    """

    def __init__(self) -> None:
        self._entries: Mapping[str, AvailabilityEntry] = MappingProxyType({})

    def snapshot(self) -> Mapping[str, AvailabilityEntry]:
        return self._entries

    def get(self, habitation_id: str) -> AvailabilityEntry | None:
        return self._entries.get(habitation_id)

    def is_reserved(self, habitation_id: str) -> bool | None:
        entry = self._entries.get(habitation_id)
        return entry.is_reserved if entry is not None else None

    def reserved_dates(self, habitation_id: str) -> tuple[ReservedDateRange, ...]:
        entry = self._entries.get(habitation_id)
        return entry.reserved_dates if entry is not None else ()

    def mark_reserved(self, habitation_id: str) -> None:
        self._write(habitation_id, is_reserved=True)

    def mark_available(self, habitation_id: str) -> None:
        self._write(habitation_id, is_reserved=False)

    def store_reserved_dates(
        self,
        habitation_id: str,
        ranges: list[ReservedDateRange] | tuple[ReservedDateRange, ...],
    ) -> None:
        self._write(habitation_id, reserved_dates=tuple(ranges))

    def invalidate(self, habitation_id: str | None = None) -> None:
        if habitation_id is None:
            self._entries = MappingProxyType({})
            return
        if habitation_id not in self._entries:
            return
        entries = dict(self._entries)
        del entries[habitation_id]
        self._entries = MappingProxyType(entries)

    def _write(self, habitation_id: str, **changes: object) -> None:
        if not habitation_id:
            raise ValidationError("habitation_id is required.")
        entries = dict(self._entries)
        current = entries.get(habitation_id) or AvailabilityEntry(habitation_id=habitation_id)
        entries[habitation_id] = replace(current, **changes)
        self._entries = MappingProxyType(entries)


class AvailabilityReconciler:
    """Aligns the local hold outcome with the server and the availability cache.

    This is the only writer of the cache. Confirmation marks the habitation
    reserved only after the server accepted it; release marks it available
    straight away, whatever the network outcome.
    """

    def __init__(
        self,
        api: ReservationApiClient,
        cache: AvailabilityCache,
        *,
        retry_count: int = 0,
        retry_backoff: float = 1.0,
        sleep: SleepFunc | None = None,
    ) -> None:
        self._api = api
        self._cache = cache
        self._retry_count = max(0, retry_count)
        self._retry_backoff = max(0.0, retry_backoff)
        self._sleep: SleepFunc = sleep or asyncio.sleep

    @property
    def cache(self) -> AvailabilityCache:
        return self._cache

    async def register_hold(self, reservation: PendingReservation) -> ReservationRecord:
        """Create the server-side record for a pending hold."""
        if not reservation.user_id:
            raise ValidationError("user_id is required to register a hold.")
        user_id = reservation.user_id
        return await self._with_retry(
            lambda: self._api.create_reservation(
                user_id,
                reservation.habitation_id,
                reservation.check_in_date,
                reservation.check_out_date,
                reservation.created_at,
                reservation.payment_deadline,
            ),
            "register",
        )

    async def on_confirmed(self, reservation: PendingReservation) -> ReservationRecord | None:
        """Confirm a registered hold on the server, then mark it reserved.

        A hold without a server id was never registered and only exists
        locally, so only the cache is updated.
        """
        if reservation.id is None:
            self._cache.mark_reserved(reservation.habitation_id)
            _LOGGER.debug("Local hold on %s marked reserved", reservation.habitation_id)
            return None
        reservation_id = reservation.id
        record = await self._with_retry(
            lambda: self._api.confirm_reservation(reservation_id),
            "confirm",
        )
        self._cache.mark_reserved(reservation.habitation_id)
        _LOGGER.debug("Habitation %s marked reserved", reservation.habitation_id)
        return record

    async def on_expired_or_cancelled(self, reservation: PendingReservation) -> None:
        self._cache.mark_available(reservation.habitation_id)
        _LOGGER.debug("Habitation %s marked available", reservation.habitation_id)
        if reservation.id is None:
            return
        reservation_id = reservation.id
        await self._with_retry(
            lambda: self._api.check_expiration(reservation_id),
            "release",
        )

    async def check_expiration(self, reservation_id: str) -> ReservationRecord:
        """Run the server's expiration check and return its view of the hold."""
        record = await self._api.check_expiration(reservation_id)
        if record is not None:
            return record
        return await self._api.get_reservation(reservation_id)

    async def check_availability(
        self,
        habitation_id: str,
        check_in: date,
        check_out: date,
    ) -> AvailabilityResult:
        result = await self._api.check_availability(habitation_id, check_in, check_out)
        if result.conflicting_reservations:
            merged = {item.id: item for item in self._cache.reserved_dates(habitation_id)}
            merged.update((item.id, item) for item in result.conflicting_reservations)
            self._cache.store_reserved_dates(habitation_id, list(merged.values()))
        return result

    async def refresh_reserved_dates(self, habitation_id: str) -> list[ReservedDateRange]:
        ranges = await self._api.get_reserved_dates(habitation_id)
        self._cache.store_reserved_dates(habitation_id, ranges)
        return ranges

    async def _with_retry(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        attempts = self._retry_count + 1
        for attempt in range(attempts):
            try:
                return await operation()
            except NetworkError as exc:
                if attempt >= attempts - 1:
                    raise
                delay = self._retry_backoff * (2**attempt)
                _LOGGER.warning(
                    "Reconciliation %s failed (%s), retrying in %.1fs", label, exc, delay
                )
                if delay > 0:
                    await self._sleep(delay)
        raise NetworkError("Reconciliation failed.")
