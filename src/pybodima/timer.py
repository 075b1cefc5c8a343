"""Cancelable per-second countdown for reservation holds."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .settings import DEFAULT_HOLD_DURATION, DEFAULT_TICK_INTERVAL
from .util import format_countdown

_LOGGER = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]
TickCallback = Callable[[int], None]
ExpiredCallback = Callable[[], None]


class CountdownTimer:
    """Countdown that ticks on the running event loop.

    Each run delivers ``on_tick(remaining)`` once per ``tick_interval`` and a
    single ``on_expired()`` when ``remaining`` reaches zero. Every ``start`` or
    ``stop`` bumps the run generation, so a stale run never delivers another
    tick.
    """

    def __init__(
        self,
        *,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        sleep: SleepFunc | None = None,
    ) -> None:
        self._tick_interval = tick_interval
        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._total_duration = 0
        self._remaining = 0
        self._active = False
        self._has_expired = False
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._on_tick: TickCallback | None = None
        self._on_expired: ExpiredCallback | None = None

    @property
    def total_duration(self) -> int:
        return self._total_duration

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def has_expired(self) -> bool:
        return self._has_expired

    @property
    def progress_fraction(self) -> float:
        if self._total_duration <= 0:
            return 0.0
        return self._remaining / self._total_duration

    @property
    def formatted_remaining(self) -> str:
        return format_countdown(self._remaining)

    def start(
        self,
        duration: int = DEFAULT_HOLD_DURATION,
        on_tick: TickCallback | None = None,
        on_expired: ExpiredCallback | None = None,
    ) -> None:
        """Start counting down from ``duration``, replacing any active run."""
        if self._active:
            self.stop()
        self._generation += 1
        generation = self._generation
        self._on_tick = on_tick
        self._on_expired = on_expired
        self._has_expired = False
        self._active = True
        loop = asyncio.get_running_loop()
        if duration <= 0:
            _LOGGER.debug("Countdown started with non-positive duration %s", duration)
            self._total_duration = 0
            self._remaining = 0
            loop.call_soon(self._expire_if_current, generation)
            return
        self._total_duration = int(duration)
        self._remaining = int(duration)
        self._task = loop.create_task(self._run(generation))
        _LOGGER.debug("Countdown started for %s seconds", duration)

    def stop(self) -> None:
        """Halt the countdown without firing ``on_expired``."""
        if not self._active and self._task is None:
            return
        self._active = False
        self._generation += 1
        self._cancel_task()
        _LOGGER.debug("Countdown stopped with %s seconds remaining", self._remaining)

    def tick(self) -> None:
        """Advance the countdown by one unit."""
        if not self._active or self._remaining <= 0:
            return
        self._remaining -= 1
        if self._on_tick is not None:
            self._on_tick(self._remaining)
        # on_tick may have stopped the countdown.
        if self._remaining == 0 and self._active:
            self._expire()

    async def _run(self, generation: int) -> None:
        while self._is_current(generation):
            await self._sleep(self._tick_interval)
            if not self._is_current(generation):
                return
            self.tick()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._active and self._remaining > 0

    def _expire_if_current(self, generation: int) -> None:
        if generation == self._generation and self._active:
            self._expire()

    def _expire(self) -> None:
        self._active = False
        self._has_expired = True
        self._cancel_task()
        _LOGGER.debug("Countdown expired")
        callback = self._on_expired
        self._on_expired = None
        if callback is not None:
            callback()

    def _cancel_task(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if task is not asyncio.current_task():
            task.cancel()
