"""Client for the reservation endpoints of the Bodima backend."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from ..exceptions import ServerError
from ..models import (
    AvailabilityResult,
    AvailableDateRange,
    Habitation,
    HabitationAvailability,
    HabitationField,
    HabitationRef,
    ReservationRecord,
    ReservedDateRange,
)
from ..util import format_stay_date, format_utc_timestamp, require_id, validate_stay_dates
from .base import BaseApiClient
from .const import (
    CHECK_AVAILABILITY_ENDPOINT,
    CHECK_EXPIRATION_ENDPOINT,
    CONFIRM_ENDPOINT,
    HABITATION_AVAILABILITY_ENDPOINT,
    RESERVATION_ENDPOINT,
    RESERVATIONS_ENDPOINT,
    RESERVED_DATES_ENDPOINT,
)

_LOGGER = logging.getLogger(__name__)


class ReservationApiClient(BaseApiClient):
    """Reservation endpoints: create, confirm, expiration and availability."""

    async def create_reservation(
        self,
        user_id: str,
        habitation_id: str,
        check_in: date,
        check_out: date,
        reserved_from: datetime,
        reserved_until: datetime,
    ) -> ReservationRecord:
        """Record a hold on the server for the given stay and reserved window."""
        user_value = require_id(user_id, "user_id")
        habitation_value = require_id(habitation_id, "habitation_id")
        check_in_day, check_out_day = validate_stay_dates(check_in, check_out)
        payload = {
            "user": user_value,
            "habitation": habitation_value,
            "checkInDate": format_stay_date(check_in_day),
            "checkOutDate": format_stay_date(check_out_day),
            "reservedDateTime": format_utc_timestamp(reserved_from),
            "reservationEndDateTime": format_utc_timestamp(reserved_until),
        }
        _LOGGER.debug("create_reservation started for habitation %s", habitation_value)
        data = await self._request_data("POST", RESERVATIONS_ENDPOINT, json=payload)
        record = self._map_record(data)
        _LOGGER.debug("create_reservation completed with id %s", record.id)
        return record

    async def get_reservation(self, reservation_id: str) -> ReservationRecord:
        reservation_value = require_id(reservation_id, "reservation_id")
        data = await self._request_data(
            "GET",
            RESERVATION_ENDPOINT.format(reservation_id=reservation_value),
        )
        return self._map_record(data)

    async def confirm_reservation(self, reservation_id: str) -> ReservationRecord | None:
        """Confirm a hold once payment completed."""
        reservation_value = require_id(reservation_id, "reservation_id")
        _LOGGER.debug("confirm_reservation started for %s", reservation_value)
        data = await self._request_data(
            "PUT",
            CONFIRM_ENDPOINT.format(reservation_id=reservation_value),
        )
        _LOGGER.debug("confirm_reservation completed for %s", reservation_value)
        return self._map_optional_record(data)

    async def check_expiration(self, reservation_id: str) -> ReservationRecord | None:
        """Ask the server to apply its own deadline to the hold."""
        reservation_value = require_id(reservation_id, "reservation_id")
        data = await self._request_data(
            "POST",
            CHECK_EXPIRATION_ENDPOINT.format(reservation_id=reservation_value),
            json={},
        )
        return self._map_optional_record(data)

    async def check_availability(
        self,
        habitation_id: str,
        check_in: date,
        check_out: date,
    ) -> AvailabilityResult:
        habitation_value = require_id(habitation_id, "habitation_id")
        check_in_day, check_out_day = validate_stay_dates(check_in, check_out)
        payload = {
            "habitationId": habitation_value,
            "checkInDate": format_stay_date(check_in_day),
            "checkOutDate": format_stay_date(check_out_day),
        }
        data = await self._request_data("POST", CHECK_AVAILABILITY_ENDPOINT, json=payload)
        if not isinstance(data, dict):
            raise ServerError("Response included invalid availability data.")
        is_available = data.get("isAvailable")
        if not isinstance(is_available, bool):
            raise ServerError("Response missing availability flag.")
        return AvailabilityResult(
            is_available=is_available,
            conflicting_reservations=self._map_range_list(data.get("conflictingReservations")),
        )

    async def get_reserved_dates(self, habitation_id: str) -> list[ReservedDateRange]:
        habitation_value = require_id(habitation_id, "habitation_id")
        data = await self._request_data(
            "GET",
            RESERVED_DATES_ENDPOINT.format(habitation_id=habitation_value),
        )
        return self._map_range_list(data)

    async def get_habitation_availability(
        self,
        habitation_id: str,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> HabitationAvailability:
        habitation_value = require_id(habitation_id, "habitation_id")
        params: dict[str, str] = {}
        if start_date is not None:
            params["startDate"] = format_utc_timestamp(start_date)
        if end_date is not None:
            params["endDate"] = format_utc_timestamp(end_date)
        data = await self._request_data(
            "GET",
            HABITATION_AVAILABILITY_ENDPOINT.format(habitation_id=habitation_value),
            params=params,
        )
        if not isinstance(data, dict):
            raise ServerError("Response included invalid availability data.")
        available_raw = data.get("availableDates") or []
        if not isinstance(available_raw, list):
            raise ServerError("Response included invalid available dates.")
        available: list[AvailableDateRange] = []
        for item in available_raw:
            if not isinstance(item, dict):
                raise ServerError("Response included invalid available dates.")
            start = item.get("startDate")
            end = item.get("endDate")
            if not isinstance(start, str) or not isinstance(end, str):
                raise ServerError("Response included invalid available dates.")
            available.append(AvailableDateRange(start_date=start, end_date=end))
        return HabitationAvailability(
            available_dates=available,
            reserved_dates=self._map_range_list(data.get("reservedDates")),
        )

    def _map_optional_record(self, data: Any) -> ReservationRecord | None:
        if isinstance(data, dict):
            return self._map_record(data)
        return None

    def _map_record(self, data: Any) -> ReservationRecord:
        if not isinstance(data, dict):
            raise ServerError("Response included invalid reservation data.")
        reservation_id = self._coerce_id(data.get("_id", data.get("id")), "reservation id")
        check_in = data.get("checkInDate")
        check_out = data.get("checkOutDate")
        status = data.get("status")
        if not isinstance(check_in, str) or not isinstance(check_out, str):
            raise ServerError("Response missing reservation dates.")
        if not isinstance(status, str) or not status:
            raise ServerError("Response missing reservation status.")
        return ReservationRecord(
            id=reservation_id,
            user_id=self._map_user_id(data.get("user")),
            habitation=self._map_habitation_field(data.get("habitation")),
            check_in_date=check_in,
            check_out_date=check_out,
            reserved_date_time=self._optional_str(data.get("reservedDateTime")),
            reservation_end_date_time=self._optional_str(data.get("reservationEndDateTime")),
            status=status,
            payment_deadline=self._optional_str(data.get("paymentDeadline")),
            is_payment_completed=data.get("isPaymentCompleted") is True,
            total_days=self._optional_int(data.get("totalDays"), "totalDays"),
            total_amount=self._optional_int(data.get("totalAmount"), "totalAmount"),
        )

    def _map_habitation_field(self, value: Any) -> HabitationField | None:
        """Resolve a habitation that is either an id or a populated object."""
        if value is None:
            return None
        if isinstance(value, str):
            return HabitationRef(id=self._coerce_id(value, "habitation id"))
        if not isinstance(value, dict):
            raise ServerError("Response included invalid habitation data.")
        habitation_id = self._coerce_id(value.get("_id", value.get("id")), "habitation id")
        name = value.get("name")
        price = value.get("price")
        if not isinstance(name, str):
            raise ServerError("Response habitation is missing its name.")
        if isinstance(price, bool) or not isinstance(price, int):
            raise ServerError("Response habitation is missing its price.")
        is_reserved = value.get("isReserved", False)
        if not isinstance(is_reserved, bool):
            raise ServerError("Response habitation has an invalid reserved flag.")
        return Habitation(
            id=habitation_id,
            name=name,
            price=price,
            is_reserved=is_reserved,
            owner_id=self._map_user_id(value.get("user")),
        )

    def _map_user_id(self, value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get("_id", value.get("id"))
        return self._coerce_id(value, "user id")

    def _map_range_list(self, data: Any) -> list[ReservedDateRange]:
        if data is None:
            return []
        if not isinstance(data, list):
            raise ServerError("Response included invalid reserved dates.")
        return [self._map_range(item) for item in data]

    def _map_range(self, data: Any) -> ReservedDateRange:
        if not isinstance(data, dict):
            raise ServerError("Response included invalid reserved dates.")
        range_id = self._coerce_id(data.get("id", data.get("_id")), "reserved range id")
        check_in = data.get("checkInDate")
        check_out = data.get("checkOutDate")
        status = data.get("status")
        if not isinstance(check_in, str) or not isinstance(check_out, str):
            raise ServerError("Response missing reserved range dates.")
        if not isinstance(status, str):
            raise ServerError("Response missing reserved range status.")
        return ReservedDateRange(
            id=range_id,
            check_in_date=check_in,
            check_out_date=check_out,
            status=status,
            user_id=self._map_user_id(data.get("user")),
        )

    def _coerce_id(self, value: Any, label: str) -> str:
        if isinstance(value, bool) or value is None:
            raise ServerError(f"Response missing {label}.")
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
        raise ServerError(f"Response included invalid {label}.")

    def _optional_str(self, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ServerError("Response included an invalid timestamp.")
        return value or None

    def _optional_int(self, value: Any, label: str) -> int | None:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise ServerError(f"Response included invalid {label}.")
        return value
