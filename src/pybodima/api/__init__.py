"""Bodima REST API clients."""

from .base import BaseApiClient
from .reservations import ReservationApiClient

__all__ = ["BaseApiClient", "ReservationApiClient"]
