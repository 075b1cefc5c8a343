"""Hold timing settings."""

from __future__ import annotations

from dataclasses import dataclass

from .exceptions import ConfigError

DEFAULT_HOLD_DURATION = 120
DEFAULT_REMINDER_LEAD_TIME = 30
DEFAULT_CALENDAR_ALARM_OFFSET = 30
DEFAULT_TICK_INTERVAL = 1.0
DEFAULT_SERVER_CHECK_INTERVAL = 10.0


@dataclass(frozen=True, slots=True)
class HoldSettings:
    """Timing contract for a single reservation hold."""

    hold_duration: int = DEFAULT_HOLD_DURATION
    reminder_lead_time: int = DEFAULT_REMINDER_LEAD_TIME
    calendar_alarm_offset: int = DEFAULT_CALENDAR_ALARM_OFFSET
    tick_interval: float = DEFAULT_TICK_INTERVAL
    server_check_interval: float | None = DEFAULT_SERVER_CHECK_INTERVAL
    reconcile_retry_count: int = 0
    reconcile_retry_backoff: float = 1.0

    def __post_init__(self) -> None:
        for name in ("hold_duration", "reminder_lead_time", "calendar_alarm_offset"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer number of seconds.")
        if self.reminder_lead_time < 0:
            raise ConfigError("reminder_lead_time must not be negative.")
        if self.calendar_alarm_offset < 0:
            raise ConfigError("calendar_alarm_offset must not be negative.")
        if not self.tick_interval > 0:
            raise ConfigError("tick_interval must be positive.")
        if self.server_check_interval is not None and not self.server_check_interval > 0:
            raise ConfigError("server_check_interval must be positive when set.")
        if isinstance(self.reconcile_retry_count, bool) or not isinstance(
            self.reconcile_retry_count, int
        ):
            raise ConfigError("reconcile_retry_count must be an integer.")
        if self.reconcile_retry_count < 0:
            raise ConfigError("reconcile_retry_count must not be negative.")
        if self.reconcile_retry_backoff < 0:
            raise ConfigError("reconcile_retry_backoff must not be negative.")

    @property
    def reminder_offset(self) -> int:
        """Seconds from hold start until the payment reminder fires."""
        return self.hold_duration - self.reminder_lead_time
