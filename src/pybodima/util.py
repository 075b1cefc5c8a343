"""Shared utilities for validation and normalization."""

from __future__ import annotations

from datetime import UTC, date, datetime, time

from .exceptions import ValidationError


def format_utc_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        raise ValidationError("Timestamp must include timezone information.")
    normalized = value.astimezone(UTC).replace(microsecond=0)
    return normalized.isoformat().replace("+00:00", "Z")


def format_stay_date(value: date) -> str:
    """Format a stay date as midnight UTC, the form the backend stores."""
    return format_utc_timestamp(datetime.combine(coerce_date(value), time.min, tzinfo=UTC))


def coerce_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date()
    if isinstance(value, date):
        return value
    raise ValidationError("Stay dates must be date or datetime values.")


def validate_stay_dates(
    check_in: date | datetime,
    check_out: date | datetime,
    *,
    today: date | datetime | None = None,
) -> tuple[date, date]:
    check_in_day = coerce_date(check_in)
    check_out_day = coerce_date(check_out)
    if today is not None and check_in_day < coerce_date(today):
        raise ValidationError("Check-in date cannot be in the past.")
    if check_out_day <= check_in_day:
        raise ValidationError("Check-out date must be after check-in date.")
    return check_in_day, check_out_day


def compute_stay_totals(
    check_in: date | datetime,
    check_out: date | datetime,
    price_per_unit: int,
) -> tuple[int, int]:
    """Return ``(total_days, total_amount)`` for a stay."""
    if isinstance(price_per_unit, bool) or not isinstance(price_per_unit, int):
        raise ValidationError("price_per_unit must be an integer.")
    if price_per_unit < 0:
        raise ValidationError("price_per_unit must not be negative.")
    check_in_day, check_out_day = validate_stay_dates(check_in, check_out)
    total_days = (check_out_day - check_in_day).days
    return total_days, total_days * price_per_unit


def format_countdown(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def require_id(value: str | None, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required.")
    return value.strip()
