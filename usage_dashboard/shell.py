"""Composition root that wires the gateway, session store and data hooks.

The shell owns the two capabilities the gateway needs from its host: a
notification sink and a session-expired handler. On expiry the handler
clears the session through the store and routes the page to the login view.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, TypeVar

import httpx

from usage_dashboard.config import DASHBOARD_ROUTE, DEFAULT_PERIOD, LOGIN_ROUTE, Settings
from usage_dashboard.gateway import RequestGateway
from usage_dashboard.notifications import NotificationCenter
from usage_dashboard.polling import DataPoller
from usage_dashboard.predictions import PredictionFetcher
from usage_dashboard.session import SessionStore
from usage_dashboard.storage import FileSessionStorage, SessionStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Navigator:
    route: str = DASHBOARD_ROUTE

    def go(self, route: str) -> None:
        if route != self.route:
            logger.debug("Navigating %s -> %s", self.route, route)
        self.route = route


class DashboardShell:
    def __init__(
        self,
        settings: Settings,
        *,
        storage: SessionStorage | None = None,
        notifications: NotificationCenter | None = None,
        navigator: Navigator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.storage = storage or FileSessionStorage(settings.session_file)
        self.notifications = notifications or NotificationCenter()
        self.navigator = navigator or Navigator()
        self.gateway = RequestGateway(
            self.storage,
            on_session_expired=self.handle_session_expired,
            notify=self.notifications,
            base_url=settings.api_base_url,
            timeout_seconds=settings.timeout_seconds,
            transport=transport,
        )
        self.store = SessionStore(self.gateway, self.storage)

    def handle_session_expired(self) -> None:
        self.store.logout()
        self.navigator.go(LOGIN_ROUTE)

    def create_poller(self, period: str = DEFAULT_PERIOD, auto_refresh: bool = False) -> DataPoller:
        return DataPoller(
            self.gateway,
            period=period,
            auto_refresh=auto_refresh,
            interval_seconds=self.settings.refresh_interval_seconds,
            idle_timeout_seconds=self.settings.idle_timeout_seconds,
        )

    def create_prediction_fetcher(self) -> PredictionFetcher:
        return PredictionFetcher(self.gateway)

    async def aclose(self) -> None:
        await self.gateway.aclose()


class BackgroundLoop:
    """Event loop on a daemon thread for hosts that are not async themselves.

    Every coroutine touching the shell must run on this loop, since the
    HTTP client and the polling timers are bound to it.
    """

    def __init__(self, name: str = "usage-dashboard-loop") -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future[T]:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        return self.submit(coro).result(timeout)

    def call(self, func: Callable[..., T], *args: Any) -> T:
        """Run a plain callable on the loop thread and return its result."""

        async def invoke() -> T:
            return func(*args)

        return self.run(invoke())

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        if not self._thread.is_alive():
            self.loop.close()
