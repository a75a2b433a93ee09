"""Windowed usage data with optional fixed-interval refresh."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable

from usage_dashboard.config import AUTO_REFRESH_INTERVAL_SECONDS, DEFAULT_PERIOD, PERIOD_OPTIONS
from usage_dashboard.gateway import GatewayError, RequestGateway
from usage_dashboard.models import StatsSummary, UsageRecord, parse_usage_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollerState:
    period: str
    data: tuple[UsageRecord, ...] = ()
    stats: StatsSummary | None = None
    loading: bool = True
    error: str | None = None


PollerListener = Callable[[PollerState], None]


def validate_period(period: str) -> str:
    if period not in PERIOD_OPTIONS:
        raise ValueError(f"Unsupported period {period!r}; expected one of {', '.join(PERIOD_OPTIONS)}.")
    return period


class DataPoller:
    """Fetches usage records and statistics for the selected period.

    Each fetch cycle issues the records and statistics requests together and
    applies both results at once, only after both have resolved. A failure
    sets ``error`` and keeps the previous ``data``/``stats``.

    Cycles are numbered. Starting a new cycle (refetch, period change or
    ``stop``) supersedes the older ones, and a superseded cycle's results
    are dropped when they arrive. The requests themselves keep running.

    With ``idle_timeout_seconds`` set, the timer stops the poller once
    :meth:`touch` has not been called for that long, so a page that went
    away does not keep polling.
    """

    def __init__(
        self,
        gateway: RequestGateway,
        *,
        period: str = DEFAULT_PERIOD,
        auto_refresh: bool = False,
        interval_seconds: float = AUTO_REFRESH_INTERVAL_SECONDS,
        idle_timeout_seconds: float | None = None,
    ) -> None:
        self.gateway = gateway
        self.interval_seconds = interval_seconds
        self.idle_timeout_seconds = idle_timeout_seconds
        self._last_seen = time.monotonic()
        self._state = PollerState(period=validate_period(period))
        self._auto_refresh = auto_refresh
        self._active = False
        self._generation = 0
        self._timer: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._listeners: list[PollerListener] = []

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def period(self) -> str:
        return self._state.period

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    @property
    def active(self) -> bool:
        return self._active

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def subscribe(self, listener: PollerListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> None:
        self._active = True
        self.touch()
        self._restart_timer()
        await self.refetch()

    def stop(self) -> None:
        self._active = False
        self._generation += 1
        self._cancel_timer()

    async def refetch(self) -> None:
        self._generation += 1
        generation = self._generation
        period = self._state.period
        self._set(loading=True, error=None)

        results = await asyncio.gather(
            self.gateway.get_usage(period),
            self.gateway.get_stats(period),
            return_exceptions=True,
        )
        if not self._is_current(generation):
            logger.debug("Dropping superseded fetch cycle %d for %s", generation, period)
            return

        for result in results:
            if isinstance(result, GatewayError):
                logger.warning("Error fetching usage data for %s: %s", period, result)
                self._set(loading=False, error=result.message or "Failed to fetch data")
                return
            if isinstance(result, BaseException):
                raise result

        usage_payload, stats_payload = results
        self._set(
            data=tuple(parse_usage_records(usage_payload)),
            stats=StatsSummary.from_payload(stats_payload if isinstance(stats_payload, dict) else None),
            loading=False,
            error=None,
        )

    async def set_period(self, period: str) -> None:
        validate_period(period)
        if period == self._state.period:
            return
        self._set(period=period)
        if not self._active:
            return
        self._restart_timer()
        await self.refetch()

    async def set_auto_refresh(self, enabled: bool) -> None:
        """Start or cancel the timer, then refetch as a period change does."""
        if enabled == self._auto_refresh:
            return
        self._auto_refresh = enabled
        if not self._active:
            return
        self._restart_timer()
        await self.refetch()

    def touch(self) -> None:
        """Record that the page is still showing this poller's data."""
        self._last_seen = time.monotonic()

    async def wait_idle(self) -> None:
        """Wait for timer-started fetch cycles that are still running."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _restart_timer(self) -> None:
        self._cancel_timer()
        if self._active and self._auto_refresh:
            self._timer = asyncio.create_task(self._tick())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self._idle():
                logger.info("Stopping idle poller for %s", self._state.period)
                self._timer = None
                self.stop()
                return
            # Cycles run as their own tasks so cancelling the timer never
            # cancels a request that is already on the wire.
            task = asyncio.create_task(self.refetch())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    def _idle(self) -> bool:
        if self.idle_timeout_seconds is None:
            return False
        return time.monotonic() - self._last_seen > self.idle_timeout_seconds

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _set(self, **changes: Any) -> None:
        updated = replace(self._state, **changes)
        if updated == self._state:
            return
        self._state = updated
        for listener in list(self._listeners):
            listener(updated)
