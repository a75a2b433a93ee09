"""Authentication state machine backed by persisted session storage."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable

from usage_dashboard.gateway import ErrorKind, GatewayError, RequestGateway
from usage_dashboard.models import LoginCredentials, Registration, UserSettingsUpdate
from usage_dashboard.storage import PersistedSession, SessionStorage
from usage_dashboard.validation import validate_password, validate_settings_update

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    ANONYMOUS = "anonymous"
    VERIFYING = "verifying"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Session:
    user: dict[str, Any] | None = None
    token: str | None = None
    is_authenticated: bool = False
    is_loading: bool = False
    status: SessionStatus = SessionStatus.ANONYMOUS


SessionListener = Callable[[Session], None]


class SessionStore:
    """Owns the current :class:`Session` and its transitions.

    The store is seeded from storage at construction, but a hydrated token is
    not trusted until :meth:`check_auth` confirms it with the server.

    Overlapping ``login``/``register``/``check_auth`` calls are last-call-wins:
    every call (``logout`` included) starts a new attempt, and a response
    that arrives for a superseded attempt leaves the session untouched.
    """

    def __init__(self, gateway: RequestGateway, storage: SessionStorage) -> None:
        self.gateway = gateway
        self.storage = storage
        persisted = storage.load()
        self._session = Session(user=persisted.user, token=persisted.token)
        self._listeners: list[SessionListener] = []
        self._attempt = 0

    @property
    def session(self) -> Session:
        return self._session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def login(self, credentials: LoginCredentials) -> bool:
        return await self._authenticate("login", self.gateway.login, credentials.to_payload())

    async def register(self, registration: Registration) -> bool:
        validate_password(registration.password)
        return await self._authenticate(
            "register", self.gateway.register, registration.to_payload()
        )

    def logout(self) -> None:
        self._attempt += 1
        self.storage.clear()
        self._set(
            user=None,
            token=None,
            is_authenticated=False,
            is_loading=False,
            status=SessionStatus.ANONYMOUS,
        )
        logger.info("Session cleared")

    async def check_auth(self) -> bool:
        token = self.storage.get_token()
        if not token:
            self._set(token=None, is_authenticated=False, status=SessionStatus.ANONYMOUS)
            return False

        attempt = self._next_attempt()
        self._set(token=token, is_loading=True, status=SessionStatus.VERIFYING)
        try:
            user = await self.gateway.get_current_user()
        except GatewayError as exc:
            # A 401 has already torn the session down through the gateway's
            # expiry handler, which also superseded this attempt.
            if self._is_current(attempt):
                logger.info("Stored token rejected (%s)", exc.kind.value)
                self.logout()
            return False

        if not self._is_current(attempt):
            return False
        user = user if isinstance(user, dict) else None
        self.storage.save(PersistedSession(token=token, user=user))
        self._set(
            user=user,
            is_authenticated=True,
            is_loading=False,
            status=SessionStatus.AUTHENTICATED,
        )
        return True

    async def update_settings(self, update: UserSettingsUpdate) -> bool:
        validate_settings_update(update)
        await self.gateway.update_settings(update.to_payload())
        return True

    async def _authenticate(
        self,
        action: str,
        call: Callable[[dict[str, Any]], Awaitable[Any]],
        payload: dict[str, Any],
    ) -> bool:
        attempt = self._next_attempt()
        previous = self._session
        self._set(is_loading=True, status=SessionStatus.VERIFYING)
        try:
            token, user = _read_auth_payload(await call(payload))
        except GatewayError:
            # A failed attempt leaves the session as it found it.
            if self._is_current(attempt):
                status = previous.status
                if status is SessionStatus.VERIFYING:
                    status = SessionStatus.ANONYMOUS
                self._set(
                    is_authenticated=previous.is_authenticated,
                    is_loading=False,
                    status=status,
                )
            raise

        if not self._is_current(attempt):
            logger.info("Discarding superseded %s response", action)
            return True

        self.storage.save(PersistedSession(token=token, user=user))
        self._set(
            user=user,
            token=token,
            is_authenticated=True,
            is_loading=False,
            status=SessionStatus.AUTHENTICATED,
        )
        logger.info("Authenticated via %s", action)
        return True

    def _next_attempt(self) -> int:
        self._attempt += 1
        return self._attempt

    def _is_current(self, attempt: int) -> bool:
        return attempt == self._attempt

    def _set(self, **changes: Any) -> None:
        updated = replace(self._session, **changes)
        if updated == self._session:
            return
        self._session = updated
        for listener in list(self._listeners):
            listener(updated)


def _read_auth_payload(data: Any) -> tuple[str, dict[str, Any] | None]:
    if not isinstance(data, dict) or not isinstance(data.get("token"), str) or not data["token"]:
        raise GatewayError("Authentication response did not include a token", ErrorKind.SERVER)
    user = data.get("user")
    return data["token"], user if isinstance(user, dict) else None
