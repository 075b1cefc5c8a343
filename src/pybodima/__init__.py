"""pyBodima package."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .availability import AvailabilityCache, AvailabilityReconciler
from .client import Client
from .exceptions import (
    AlreadyInProgressError,
    AuthError,
    CalendarError,
    ConfigError,
    ExpiredError,
    InvalidTransitionError,
    NetworkError,
    NotificationError,
    PermissionDeniedError,
    PyBodimaError,
    ServerError,
    ValidationError,
)
from .manager import ReservationStateManager
from .models import (
    EventKind,
    Habitation,
    HabitationRef,
    HoldState,
    PendingReservation,
    ReservationEvent,
    ReservationRecord,
    ReservationStatus,
)
from .settings import HoldSettings
from .timer import CountdownTimer

try:
    __version__ = version("pybodima")
except PackageNotFoundError:  # pragma: no cover - not installed
    __version__ = "0.0.0"

__all__ = [
    "AlreadyInProgressError",
    "AuthError",
    "AvailabilityCache",
    "AvailabilityReconciler",
    "CalendarError",
    "Client",
    "ConfigError",
    "CountdownTimer",
    "EventKind",
    "ExpiredError",
    "Habitation",
    "HabitationRef",
    "HoldSettings",
    "HoldState",
    "InvalidTransitionError",
    "NetworkError",
    "NotificationError",
    "PendingReservation",
    "PermissionDeniedError",
    "PyBodimaError",
    "ReservationEvent",
    "ReservationRecord",
    "ReservationStateManager",
    "ReservationStatus",
    "ServerError",
    "ValidationError",
    "__version__",
]
