import httpx
import pytest

from usage_dashboard.config import SESSION_EXPIRED_MESSAGE
from usage_dashboard.gateway import Envelope, ErrorKind, GatewayError, RequestGateway, classify_status
from usage_dashboard.notifications import Notification, NotificationLevel
from usage_dashboard.storage import MemorySessionStorage, PersistedSession

BASE_URL = "http://api.test/api/v1"


class Recorder:
    def __init__(self) -> None:
        self.notifications: list[Notification] = []
        self.expired_calls = 0
        self.requests: list[httpx.Request] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def expired(self) -> None:
        self.expired_calls += 1


def _gateway(handler, recorder: Recorder, storage: MemorySessionStorage | None = None) -> RequestGateway:
    def recording_handler(request: httpx.Request) -> httpx.Response:
        recorder.requests.append(request)
        return handler(request)

    return RequestGateway(
        storage or MemorySessionStorage(),
        on_session_expired=recorder.expired,
        notify=recorder.notify,
        base_url=BASE_URL,
        transport=httpx.MockTransport(recording_handler),
    )


def test_classify_status() -> None:
    assert classify_status(401) is ErrorKind.AUTH_EXPIRED
    assert classify_status(400) is ErrorKind.VALIDATION
    assert classify_status(409) is ErrorKind.VALIDATION
    assert classify_status(500) is ErrorKind.SERVER
    assert classify_status(503) is ErrorKind.SERVER


def test_envelope_decode_rejects_missing_success_flag() -> None:
    assert Envelope.decode({"success": True, "data": [1]}).data == [1]
    assert Envelope.decode({"success": False, "error": "Unauthorized"}).message == "Unauthorized"
    with pytest.raises(ValueError):
        Envelope.decode({"data": []})
    with pytest.raises(ValueError):
        Envelope.decode({"success": "yes", "data": []})
    with pytest.raises(ValueError):
        Envelope.decode([{"success": True}])


@pytest.mark.asyncio
async def test_bearer_token_is_read_from_storage_per_request() -> None:
    recorder = Recorder()
    storage = MemorySessionStorage()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "data": {"id": 1}})

    async with _gateway(handler, recorder, storage) as gateway:
        await gateway.get_current_user()
        storage.save(PersistedSession(token="t1", user={"id": 1}))
        await gateway.get_current_user()

    assert "Authorization" not in recorder.requests[0].headers
    assert recorder.requests[1].headers["Authorization"] == "Bearer t1"


@pytest.mark.asyncio
async def test_success_returns_only_payload_and_sends_period() -> None:
    recorder = Recorder()
    rows = [{"timestamp": "2026-01-01T00:00:00Z", "model_name": "gpt-4o", "total_tokens": 10}]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "data": rows})

    async with _gateway(handler, recorder) as gateway:
        data = await gateway.get_usage("30d")

    assert data == rows
    request = recorder.requests[0]
    assert request.method == "GET"
    assert request.url.path == "/api/v1/usage"
    assert request.url.params["period"] == "30d"
    assert recorder.notifications == []


@pytest.mark.asyncio
async def test_unsuccessful_envelope_on_200_is_a_failure() -> None:
    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "Invalid password"})

    async with _gateway(handler, recorder) as gateway:
        with pytest.raises(GatewayError) as excinfo:
            await gateway.login({"email": "a@b.com", "password": "nope"})

    assert excinfo.value.kind is ErrorKind.VALIDATION
    assert excinfo.value.message == "Invalid password"
    assert recorder.notifications == [Notification(NotificationLevel.ERROR, "Invalid password")]
    assert recorder.expired_calls == 0


@pytest.mark.asyncio
async def test_malformed_envelope_is_a_server_error() -> None:
    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {"token": "t1"}})

    async with _gateway(handler, recorder) as gateway:
        with pytest.raises(GatewayError) as excinfo:
            await gateway.get_predictions()

    assert excinfo.value.kind is ErrorKind.SERVER
    assert excinfo.value.message == "Malformed response envelope"


@pytest.mark.asyncio
async def test_non_json_success_body_is_a_server_error() -> None:
    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    async with _gateway(handler, recorder) as gateway:
        with pytest.raises(GatewayError) as excinfo:
            await gateway.get_stats("7d")

    assert excinfo.value.kind is ErrorKind.SERVER


@pytest.mark.asyncio
async def test_client_error_uses_server_message() -> None:
    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"success": False, "error": "Email already registered"})

    async with _gateway(handler, recorder) as gateway:
        with pytest.raises(GatewayError) as excinfo:
            await gateway.register({"email": "a@b.com"})

    assert excinfo.value.kind is ErrorKind.VALIDATION
    assert excinfo.value.status_code == 409
    assert str(excinfo.value) == "Email already registered (status=409)"
    assert recorder.notifications[0].message == "Email already registered"


@pytest.mark.asyncio
async def test_server_error_without_body_falls_back_to_status_message() -> None:
    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    async with _gateway(handler, recorder) as gateway:
        with pytest.raises(GatewayError) as excinfo:
            await gateway.get_anomalies()

    assert excinfo.value.kind is ErrorKind.SERVER
    assert excinfo.value.message == "Request failed with status 502"


@pytest.mark.asyncio
async def test_unauthorized_triggers_session_expiry_once() -> None:
    recorder = Recorder()
    storage = MemorySessionStorage(PersistedSession(token="stale"))

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"success": False, "error": "Unauthorized"})

    async with _gateway(handler, recorder, storage) as gateway:
        with pytest.raises(GatewayError) as excinfo:
            await gateway.get_usage("7d")

    assert excinfo.value.kind is ErrorKind.AUTH_EXPIRED
    assert recorder.expired_calls == 1
    assert recorder.notifications == [Notification(NotificationLevel.ERROR, SESSION_EXPIRED_MESSAGE)]


@pytest.mark.asyncio
async def test_transport_failures_are_network_errors() -> None:
    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/predictions"):
            raise httpx.ReadTimeout("timed out", request=request)
        raise httpx.ConnectError("connection refused", request=request)

    async with _gateway(handler, recorder) as gateway:
        with pytest.raises(GatewayError) as timeout_info:
            await gateway.get_predictions()
        with pytest.raises(GatewayError) as connect_info:
            await gateway.get_current_user()

    assert timeout_info.value.kind is ErrorKind.NETWORK
    assert "timed out" in timeout_info.value.message
    assert connect_info.value.kind is ErrorKind.NETWORK
    assert connect_info.value.status_code is None
    assert len(recorder.notifications) == 2
    assert recorder.expired_calls == 0


@pytest.mark.asyncio
async def test_export_returns_raw_bytes() -> None:
    recorder = Recorder()
    body = b'[{"timestamp": "2026-01-01T00:00:00Z"}]'

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body, headers={"Content-Type": "application/octet-stream"})

    async with _gateway(handler, recorder) as gateway:
        payload = await gateway.export_usage("90d")

    assert payload == body
    assert recorder.requests[0].url.path == "/api/v1/usage/export"
    assert recorder.requests[0].url.params["period"] == "90d"


@pytest.mark.asyncio
async def test_settings_and_api_key_routes() -> None:
    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "data": None})

    async with _gateway(handler, recorder) as gateway:
        await gateway.update_settings({"name": "Ada"})
        await gateway.update_api_key("k1", {"name": "prod"})
        await gateway.delete_api_key("k1")
        await gateway.logout()

    assert [(r.method, r.url.path) for r in recorder.requests] == [
        ("PUT", "/api/v1/user/settings"),
        ("PUT", "/api/v1/api-keys/k1"),
        ("DELETE", "/api/v1/api-keys/k1"),
        ("POST", "/api/v1/auth/logout"),
    ]
