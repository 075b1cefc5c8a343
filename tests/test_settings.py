import pytest

from pybodima.exceptions import ConfigError
from pybodima.settings import HoldSettings


def test_defaults() -> None:
    settings = HoldSettings()
    assert settings.hold_duration == 120
    assert settings.reminder_lead_time == 30
    assert settings.calendar_alarm_offset == 30
    assert settings.reminder_offset == 90


def test_short_hold_allowed() -> None:
    settings = HoldSettings(hold_duration=0)
    assert settings.reminder_offset == -30


@pytest.mark.parametrize(
    "kwargs",
    [
        {"hold_duration": 1.5},
        {"hold_duration": True},
        {"reminder_lead_time": -1},
        {"calendar_alarm_offset": -5},
        {"tick_interval": 0},
        {"server_check_interval": 0},
        {"reconcile_retry_count": -1},
        {"reconcile_retry_backoff": -0.5},
    ],
)
def test_invalid_settings(kwargs: dict) -> None:
    with pytest.raises(ConfigError):
        HoldSettings(**kwargs)


def test_server_check_can_be_disabled() -> None:
    assert HoldSettings(server_check_interval=None).server_check_interval is None
