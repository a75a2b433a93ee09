"""Request gateway for the usage analytics API.

Every outbound call goes through :class:`RequestGateway`. It attaches the
bearer token from session storage, unwraps the ``{success, data, message}``
envelope, and turns every failure into a :class:`GatewayError` after
reporting it. A 401 additionally invokes the session-expired handler that
the hosting shell supplies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import httpx

from usage_dashboard.config import (
    ANALYTICS_ANOMALIES_ENDPOINT,
    ANALYTICS_OVERVIEW_ENDPOINT,
    API_BASE_URL,
    API_KEYS_ENDPOINT,
    AUTH_LOGIN_ENDPOINT,
    AUTH_LOGOUT_ENDPOINT,
    AUTH_ME_ENDPOINT,
    AUTH_REGISTER_ENDPOINT,
    PREDICTIONS_ENDPOINT,
    PREDICTIONS_GENERATE_ENDPOINT,
    REQUEST_TIMEOUT_SECONDS,
    SESSION_EXPIRED_MESSAGE,
    USAGE_ENDPOINT,
    USAGE_EXPORT_ENDPOINT,
    USAGE_STATS_ENDPOINT,
    USER_SETTINGS_ENDPOINT,
)
from usage_dashboard.notifications import Notification, NotificationLevel, Notifier
from usage_dashboard.storage import SessionStorage

logger = logging.getLogger(__name__)

SessionExpiredHandler = Callable[[], None]


class ErrorKind(str, Enum):
    NETWORK = "network"
    VALIDATION = "validation"
    AUTH_EXPIRED = "auth_expired"
    SERVER = "server"


@dataclass
class GatewayError(Exception):
    """Represents a failed API request."""

    message: str
    kind: ErrorKind = ErrorKind.SERVER
    status_code: int | None = None

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status={self.status_code})"


@dataclass(frozen=True)
class Envelope:
    """Decoded ``{success, data, message}`` response wrapper."""

    success: bool
    data: Any = None
    message: str | None = None

    @classmethod
    def decode(cls, payload: Any) -> "Envelope":
        if not isinstance(payload, dict) or not isinstance(payload.get("success"), bool):
            raise ValueError("Malformed response envelope")
        message = payload.get("message") or payload.get("error")
        return cls(
            success=payload["success"],
            data=payload.get("data"),
            message=str(message) if message else None,
        )


def classify_status(status_code: int) -> ErrorKind:
    if status_code == 401:
        return ErrorKind.AUTH_EXPIRED
    if 400 <= status_code < 500:
        return ErrorKind.VALIDATION
    return ErrorKind.SERVER


class RequestGateway:
    def __init__(
        self,
        storage: SessionStorage,
        *,
        on_session_expired: SessionExpiredHandler,
        notify: Notifier | None = None,
        base_url: str = API_BASE_URL,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.storage = storage
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._on_session_expired = on_session_expired
        self._notify = notify
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Content-Type": "application/json"},
            event_hooks={"request": [self._attach_credentials]},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RequestGateway":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.aclose()

    # -- auth -----------------------------------------------------------

    async def login(self, credentials: dict[str, Any]) -> Any:
        return await self.request("POST", AUTH_LOGIN_ENDPOINT, json=credentials)

    async def register(self, user_data: dict[str, Any]) -> Any:
        return await self.request("POST", AUTH_REGISTER_ENDPOINT, json=user_data)

    async def logout(self) -> Any:
        return await self.request("POST", AUTH_LOGOUT_ENDPOINT)

    async def get_current_user(self) -> Any:
        return await self.request("GET", AUTH_ME_ENDPOINT)

    async def update_settings(self, settings: dict[str, Any]) -> Any:
        return await self.request("PUT", USER_SETTINGS_ENDPOINT, json=settings)

    # -- usage ----------------------------------------------------------

    async def get_usage(self, period: str) -> Any:
        return await self.request("GET", USAGE_ENDPOINT, params={"period": period})

    async def record_usage(self, usage: dict[str, Any]) -> Any:
        return await self.request("POST", USAGE_ENDPOINT, json=usage)

    async def get_stats(self, period: str) -> Any:
        return await self.request("GET", USAGE_STATS_ENDPOINT, params={"period": period})

    async def export_usage(self, period: str) -> bytes:
        """Download the usage export as raw bytes; the body is not enveloped."""
        response = await self._send("GET", USAGE_EXPORT_ENDPOINT, params={"period": period})
        return response.content

    # -- predictions & analytics ----------------------------------------

    async def get_predictions(self) -> Any:
        return await self.request("GET", PREDICTIONS_ENDPOINT)

    async def generate_prediction(self, options: dict[str, Any]) -> Any:
        return await self.request("POST", PREDICTIONS_GENERATE_ENDPOINT, json=options)

    async def get_analytics(self, period: str) -> Any:
        return await self.request("GET", ANALYTICS_OVERVIEW_ENDPOINT, params={"period": period})

    async def get_anomalies(self) -> Any:
        return await self.request("GET", ANALYTICS_ANOMALIES_ENDPOINT)

    # -- api keys -------------------------------------------------------

    async def list_api_keys(self) -> Any:
        return await self.request("GET", API_KEYS_ENDPOINT)

    async def create_api_key(self, data: dict[str, Any]) -> Any:
        return await self.request("POST", API_KEYS_ENDPOINT, json=data)

    async def update_api_key(self, key_id: str, data: dict[str, Any]) -> Any:
        return await self.request("PUT", f"{API_KEYS_ENDPOINT}/{key_id}", json=data)

    async def delete_api_key(self, key_id: str) -> Any:
        return await self.request("DELETE", f"{API_KEYS_ENDPOINT}/{key_id}")

    # -- transport ------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the ``data`` field of a successful envelope."""
        response = await self._send(method, path, params=params, json=json)

        try:
            envelope = Envelope.decode(response.json())
        except ValueError as exc:
            raise self._fail(
                method,
                path,
                GatewayError("Malformed response envelope", ErrorKind.SERVER, response.status_code),
            ) from exc

        if not envelope.success:
            raise self._fail(
                method,
                path,
                GatewayError(
                    envelope.message or "Request failed",
                    ErrorKind.VALIDATION,
                    response.status_code,
                ),
            )
        return envelope.data

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as exc:
            raise self._fail(
                method,
                path,
                GatewayError(f"Request timed out after {self.timeout_seconds}s", ErrorKind.NETWORK),
            ) from exc
        except httpx.HTTPError as exc:
            raise self._fail(
                method, path, GatewayError(f"Request failed: {exc}", ErrorKind.NETWORK)
            ) from exc

        if response.status_code >= 400:
            kind = classify_status(response.status_code)
            raise self._fail(
                method,
                path,
                GatewayError(self._error_message(response, kind), kind, response.status_code),
            )
        return response

    async def _attach_credentials(self, request: httpx.Request) -> None:
        token = self.storage.get_token()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

    def _fail(self, method: str, path: str, error: GatewayError) -> GatewayError:
        logger.warning("%s %s failed [%s]: %s", method, path, error.kind.value, error)

        if error.kind is ErrorKind.AUTH_EXPIRED:
            self._on_session_expired()
            self._emit(SESSION_EXPIRED_MESSAGE)
        else:
            self._emit(error.message)
        return error

    def _emit(self, message: str) -> None:
        if self._notify is not None:
            self._notify(Notification(NotificationLevel.ERROR, message))

    @staticmethod
    def _error_message(response: httpx.Response, kind: ErrorKind) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error")
            if message:
                return str(message)
        if kind is ErrorKind.AUTH_EXPIRED:
            return SESSION_EXPIRED_MESSAGE
        return response.text.strip() or f"Request failed with status {response.status_code}"
