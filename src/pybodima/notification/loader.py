"""Alert copy loading."""

from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable

from ..exceptions import ConfigError
from .const import (
    ALERT_COPY_FILENAME,
    ALERT_SCHEMA_FILENAME,
    CALENDAR_KEY,
    EXPIRY_IDENTIFIER,
    REMINDER_IDENTIFIER,
)

_ALERT_COPY_CACHE: AlertCopy | None = None


@dataclass(frozen=True, slots=True)
class AlertText:
    title: str
    body: str


@dataclass(frozen=True, slots=True)
class AlertCopy:
    reminder: AlertText
    expiry: AlertText
    calendar: AlertText

    def reminder_body(self, lead_seconds: int) -> str:
        return _render(self.reminder.body, lead_seconds=lead_seconds)

    def calendar_notes(self, habitation_name: str, hold_seconds: int) -> str:
        hold_minutes = max(1, round(hold_seconds / 60)) if hold_seconds > 0 else 0
        return _render(
            self.calendar.body,
            habitation_name=habitation_name,
            hold_minutes=hold_minutes,
        )


def _render(template: str, **values: object) -> str:
    try:
        return template.format(**values)
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigError("Alert copy contains an unknown placeholder.") from exc


def _notification_root() -> Traversable:
    return resources.files("pybodima.notification")


def load_alert_schema() -> dict:
    schema_path = _notification_root() / ALERT_SCHEMA_FILENAME
    return json.loads(schema_path.read_text(encoding="utf-8"))


def _build_text(data: dict, key: str) -> AlertText:
    entry = data.get(key)
    if not isinstance(entry, dict):
        raise ConfigError(f"Alert copy missing entry: {key}.")
    title = entry.get("title")
    body = entry.get("body")
    if not isinstance(title, str) or not title:
        raise ConfigError(f"Alert copy {key} title must be a non-empty string.")
    if not isinstance(body, str) or not body:
        raise ConfigError(f"Alert copy {key} body must be a non-empty string.")
    return AlertText(title=title, body=body)


def build_alert_copy(data: dict) -> AlertCopy:
    if not isinstance(data, dict):
        raise ConfigError("Alert copy must be a JSON object.")
    return AlertCopy(
        reminder=_build_text(data, REMINDER_IDENTIFIER),
        expiry=_build_text(data, EXPIRY_IDENTIFIER),
        calendar=_build_text(data, CALENDAR_KEY),
    )


def load_alert_copy() -> AlertCopy:
    global _ALERT_COPY_CACHE
    if _ALERT_COPY_CACHE is not None:
        return _ALERT_COPY_CACHE
    copy_path = _notification_root() / ALERT_COPY_FILENAME
    try:
        data = json.loads(copy_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError("Alert copy is not valid JSON.") from exc
    except FileNotFoundError as exc:
        raise ConfigError("Alert copy resource was not found.") from exc
    _ALERT_COPY_CACHE = build_alert_copy(data)
    return _ALERT_COPY_CACHE


def clear_alert_copy_cache() -> None:
    """Clear cached alert copy (used in tests)."""
    global _ALERT_COPY_CACHE
    _ALERT_COPY_CACHE = None
