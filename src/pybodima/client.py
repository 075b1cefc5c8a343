"""Client facade wiring the API, alerts and hold state together."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import aiohttp

from .api.reservations import ReservationApiClient
from .availability import AvailabilityCache, AvailabilityReconciler
from .manager import ReservationStateManager
from .notification.base import CalendarService, NotificationService
from .notification.dispatcher import NotificationDispatcher
from .notification.loader import AlertCopy
from .settings import HoldSettings
from .timer import SleepFunc

_DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=60)


class Client:
    """Facade for the Bodima reservation backend."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        base_url: str | None = None,
        api_uri: str | None = None,
        token: str | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        retry_count: int = 0,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._base_url = base_url
        self._api_uri = api_uri
        self._token = token
        self._timeout = timeout or _DEFAULT_TIMEOUT
        self._retry_count = max(0, retry_count)
        self._reservations: ReservationApiClient | None = None
        self._cache = AvailabilityCache()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._reservations = None

    @property
    def availability_cache(self) -> AvailabilityCache:
        return self._cache

    @property
    def reservations(self) -> ReservationApiClient:
        if self._reservations is None:
            self._reservations = ReservationApiClient(
                self._ensure_session(),
                base_url=self._base_url,
                api_uri=self._api_uri,
                token=self._token,
                timeout=self._timeout,
                retry_count=self._retry_count,
            )
        return self._reservations

    def set_token(self, token: str | None) -> None:
        self._token = token or None
        if self._reservations is not None:
            self._reservations.set_token(token)

    def create_reservation_manager(
        self,
        notifications: NotificationService | None = None,
        calendar: CalendarService | None = None,
        *,
        settings: HoldSettings | None = None,
        copy: AlertCopy | None = None,
        sleep: SleepFunc | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> ReservationStateManager:
        """Build a hold manager that shares this client's session and cache."""
        hold_settings = settings or HoldSettings()
        reconciler = AvailabilityReconciler(
            self.reservations,
            self._cache,
            retry_count=hold_settings.reconcile_retry_count,
            retry_backoff=hold_settings.reconcile_retry_backoff,
            sleep=sleep,
        )
        dispatcher = NotificationDispatcher(
            notifications,
            calendar,
            copy=copy,
            calendar_alarm_offset=hold_settings.calendar_alarm_offset,
        )
        return ReservationStateManager(
            reconciler,
            dispatcher,
            settings=hold_settings,
            clock=clock,
            sleep=sleep,
        )

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session
