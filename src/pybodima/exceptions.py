"""Library exceptions."""

from __future__ import annotations


class PyBodimaError(Exception):
    """Base exception for the library."""

    error_type = "unknown"
    default_error_code: str | None = None
    default_user_message: str | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        detail: str | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message or detail or "")
        self.error_code = error_code or self.default_error_code
        self.detail = detail or message
        self.user_message = user_message or self.default_user_message


class ValidationError(PyBodimaError):
    """Raised when inputs fail validation."""

    error_type = "validation"
    default_error_code = "validation_error"


class ConfigError(PyBodimaError):
    """Raised when settings or packaged resources are invalid."""

    error_type = "config"
    default_error_code = "config_error"


class AuthError(PyBodimaError):
    """Raised when the backend rejects the credentials."""

    error_type = "auth"
    default_error_code = "auth_error"


class NetworkError(PyBodimaError):
    """Raised when network communication fails."""

    error_type = "network"
    default_error_code = "network_error"
    default_user_message = "Network issue. Please try again later."


class ServerError(PyBodimaError):
    """Raised when the backend returns an error or an unusable payload."""

    error_type = "server"
    default_error_code = "server_error"
    default_user_message = "Something went wrong. Please try again."


class ReservationStateError(PyBodimaError):
    """Base class for state machine precondition violations."""

    error_type = "state"


class AlreadyInProgressError(ReservationStateError):
    """Raised when a hold is started while another one is pending."""

    default_error_code = "already_in_progress"


class ExpiredError(ReservationStateError):
    """Raised when confirming a hold after its deadline passed."""

    default_error_code = "expired"
    default_user_message = (
        "Your reservation window closed. The property is now available for others to book."
    )


class InvalidTransitionError(ReservationStateError):
    """Raised when a state machine call is made from an illegal state."""

    default_error_code = "invalid_transition"


class SideChannelError(PyBodimaError):
    """Base class for notification and calendar failures."""

    error_type = "side_channel"


class PermissionDeniedError(SideChannelError):
    """Raised when the user denied notification or calendar access."""

    default_error_code = "permission_denied"


class NotificationError(SideChannelError):
    """Raised when a local notification could not be scheduled or removed."""

    default_error_code = "notification_error"


class CalendarError(SideChannelError):
    """Raised when a calendar event could not be written."""

    default_error_code = "calendar_error"
