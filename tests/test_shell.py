import httpx
import pytest

from usage_dashboard.config import DASHBOARD_ROUTE, LOGIN_ROUTE, SESSION_EXPIRED_MESSAGE, Settings
from usage_dashboard.gateway import ErrorKind, GatewayError
from usage_dashboard.models import LoginCredentials
from usage_dashboard.session import SessionStatus
from usage_dashboard.shell import BackgroundLoop, DashboardShell
from usage_dashboard.storage import MemorySessionStorage, PersistedSession

SETTINGS = Settings(api_base_url="http://api.test/api/v1", refresh_interval_seconds=10)


def _shell(handler, storage: MemorySessionStorage | None = None) -> DashboardShell:
    return DashboardShell(
        SETTINGS,
        storage=storage or MemorySessionStorage(),
        transport=httpx.MockTransport(handler),
    )


def test_settings_from_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("USAGE_API_URL", "https://usage.example.com/api/v1/")
    monkeypatch.setenv("USAGE_DASHBOARD_SESSION_FILE", str(tmp_path / "auth.json"))

    settings = Settings.from_env()

    assert settings.api_base_url == "https://usage.example.com/api/v1"
    assert settings.session_file == tmp_path / "auth.json"


def test_settings_default_base_url(monkeypatch) -> None:
    monkeypatch.delenv("USAGE_API_URL", raising=False)

    assert Settings.from_env().api_base_url == "http://localhost:3000/api/v1"


@pytest.mark.asyncio
async def test_login_scenario_persists_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/auth/login"
        return httpx.Response(200, json={"success": True, "data": {"token": "t1", "user": {"id": 1}}})

    storage = MemorySessionStorage()
    shell = _shell(handler, storage)

    await shell.store.login(LoginCredentials(email="a@b.com", password="Secr3t!"))
    await shell.aclose()

    assert storage.get_token() == "t1"
    assert shell.store.session.is_authenticated is True


@pytest.mark.asyncio
async def test_unsuccessful_envelope_leaves_session_untouched() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "Invalid password"})

    storage = MemorySessionStorage(PersistedSession(token="old", user={"id": 3}))
    shell = _shell(handler, storage)
    before = shell.store.session

    with pytest.raises(GatewayError, match="Invalid password"):
        await shell.store.login(LoginCredentials(email="a@b.com", password="wrong"))
    await shell.aclose()

    assert storage.load() == PersistedSession(token="old", user={"id": 3})
    assert shell.store.session == before
    assert [n.message for n in shell.notifications.drain()] == ["Invalid password"]
    assert shell.navigator.route == DASHBOARD_ROUTE


@pytest.mark.asyncio
async def test_unauthorized_poll_forces_logout_once() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/usage/stats"):
            return httpx.Response(401, json={"success": False, "error": "Unauthorized"})
        if request.url.path.endswith("/auth/me"):
            return httpx.Response(200, json={"success": True, "data": {"id": 1}})
        return httpx.Response(200, json={"success": True, "data": []})

    storage = MemorySessionStorage(PersistedSession(token="t1", user={"id": 1}))
    shell = _shell(handler, storage)
    assert await shell.store.check_auth() is True
    logouts: list[SessionStatus] = []
    shell.store.subscribe(lambda session: logouts.append(session.status))

    poller = shell.create_poller()
    await poller.start()
    poller.stop()
    await shell.aclose()

    assert poller.state.error == "Unauthorized"
    assert storage.get_token() is None
    assert shell.store.session.is_authenticated is False
    assert logouts == [SessionStatus.ANONYMOUS]
    assert shell.navigator.route == LOGIN_ROUTE
    assert [n.message for n in shell.notifications.drain()] == [SESSION_EXPIRED_MESSAGE]


@pytest.mark.asyncio
async def test_check_auth_with_expired_token_logs_out_once() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"success": False, "error": "Invalid token"})

    storage = MemorySessionStorage(PersistedSession(token="expired"))
    shell = _shell(handler, storage)
    statuses: list[SessionStatus] = []
    shell.store.subscribe(lambda session: statuses.append(session.status))

    assert await shell.store.check_auth() is False
    await shell.aclose()

    assert statuses == [SessionStatus.VERIFYING, SessionStatus.ANONYMOUS]
    assert storage.get_token() is None
    assert shell.navigator.route == LOGIN_ROUTE
    assert len(shell.notifications.drain()) == 1


@pytest.mark.asyncio
async def test_predictions_flow_through_gateway() -> None:
    seen_headers: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_headers.append(request.headers.get("Authorization"))
        return httpx.Response(200, json={"success": True, "data": [{"predicted_daily_cost": 1.0}]})

    shell = _shell(handler, MemorySessionStorage(PersistedSession(token="t9")))
    fetcher = shell.create_prediction_fetcher()

    state = await fetcher.load()
    await shell.aclose()

    assert state.predictions[0].predicted_daily_cost == 1.0
    assert seen_headers == ["Bearer t9"]


def test_background_loop_runs_coroutines_and_callables() -> None:
    runner = BackgroundLoop()

    async def add(a: int, b: int) -> int:
        return a + b

    try:
        assert runner.run(add(2, 3), timeout=5) == 5
        assert runner.call(lambda: "on-loop") == "on-loop"
    finally:
        runner.stop()

    assert runner.loop.is_closed()


def test_sessions_share_one_background_loop() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "data": {"id": 1}})

    settings = Settings(api_base_url="http://api.test/api/v1", idle_timeout_seconds=45)
    runner = BackgroundLoop()
    shells = [
        DashboardShell(
            settings,
            storage=MemorySessionStorage(PersistedSession(token=token)),
            transport=httpx.MockTransport(handler),
        )
        for token in ("a", "b")
    ]
    try:
        assert [runner.run(shell.store.check_auth(), timeout=5) for shell in shells] == [True, True]
        assert shells[0].create_poller().idle_timeout_seconds == 45
        for shell in shells:
            runner.run(shell.aclose(), timeout=5)
    finally:
        runner.stop()
