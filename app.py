"""Streamlit entrypoint for the API usage dashboard."""

from __future__ import annotations

import time
from typing import Any

import streamlit as st
from dotenv import load_dotenv

from usage_dashboard.charts import cost_chart, request_chart, token_chart
from usage_dashboard.config import (
    DASHBOARD_ROUTE,
    LOGIN_ROUTE,
    REGISTER_ROUTE,
    SETTINGS_ROUTE,
    Settings,
)
from usage_dashboard.formatters import build_export_filename
from usage_dashboard.gateway import GatewayError
from usage_dashboard.polling import DataPoller
from usage_dashboard.predictions import PredictionFetcher
from usage_dashboard.shell import BackgroundLoop, DashboardShell
from usage_dashboard.transformers import aggregate_usage_by_day, build_model_breakdown, build_usage_records_df
from usage_dashboard.ui import (
    apply_app_styles,
    render_dashboard_controls,
    render_header,
    render_kpi_cards,
    render_login_form,
    render_prediction_panel,
    render_register_form,
    render_settings_form,
    show_notifications,
)
from usage_dashboard.validation import PasswordPolicyError, SettingsValidationError

_PUBLIC_ROUTES = {LOGIN_ROUTE, REGISTER_ROUTE}


@st.cache_resource
def _background_loop() -> BackgroundLoop:
    """One event loop thread shared by every browser session of the server process."""
    return BackgroundLoop()


def _runtime() -> tuple[BackgroundLoop, DashboardShell]:
    """Create the shell once per browser session, then verify the stored token."""
    if "runtime" not in st.session_state:
        runner = _background_loop()
        shell = DashboardShell(Settings.from_env())
        runner.run(shell.store.check_auth())
        st.session_state["runtime"] = (runner, shell)
    return st.session_state["runtime"]


def _release_dashboard(runner: BackgroundLoop) -> None:
    poller: DataPoller | None = st.session_state.pop("poller", None)
    if poller is not None:
        runner.call(poller.stop)
    for key in ["predictions", "export_payload"]:
        st.session_state.pop(key, None)


def _guard_route(runner: BackgroundLoop, shell: DashboardShell) -> str:
    route = shell.navigator.route
    authenticated = shell.store.session.is_authenticated
    if not authenticated and route not in _PUBLIC_ROUTES:
        _release_dashboard(runner)
        shell.navigator.go(LOGIN_ROUTE)
    elif authenticated and route in _PUBLIC_ROUTES:
        shell.navigator.go(DASHBOARD_ROUTE)
    return shell.navigator.route


def _go(route: str) -> None:
    _, shell = st.session_state["runtime"]
    shell.navigator.go(route)
    st.rerun()


def render_login(runner: BackgroundLoop, shell: DashboardShell) -> None:
    credentials = render_login_form()
    if st.button("Need an account? Register"):
        _go(REGISTER_ROUTE)
    if credentials is None:
        return
    try:
        runner.run(shell.store.login(credentials))
    except GatewayError:
        # Already queued as a notification by the gateway.
        return
    _go(DASHBOARD_ROUTE)


def render_register(runner: BackgroundLoop, shell: DashboardShell) -> None:
    registration = render_register_form()
    if st.button("Already registered? Sign in"):
        _go(LOGIN_ROUTE)
    if registration is None:
        return
    try:
        runner.run(shell.store.register(registration))
    except PasswordPolicyError as exc:
        st.error(str(exc))
        return
    except GatewayError:
        return
    shell.notifications.success("Registration successful!")
    _go(DASHBOARD_ROUTE)


def render_settings(runner: BackgroundLoop, shell: DashboardShell) -> None:
    update = render_settings_form()
    if update is None:
        return
    try:
        runner.run(shell.store.update_settings(update))
    except (PasswordPolicyError, SettingsValidationError) as exc:
        st.error(str(exc))
        return
    except GatewayError:
        return
    st.success("Settings updated!")


def _dashboard_hooks(runner: BackgroundLoop, shell: DashboardShell) -> tuple[DataPoller, PredictionFetcher]:
    if "poller" not in st.session_state:
        poller = shell.create_poller()
        runner.run(poller.start())
        st.session_state["poller"] = poller
    elif not st.session_state["poller"].active:
        # Stopped after the page went idle.
        runner.run(st.session_state["poller"].start())
    if "predictions" not in st.session_state:
        fetcher = shell.create_prediction_fetcher()
        runner.run(fetcher.load())
        st.session_state["predictions"] = fetcher
    return st.session_state["poller"], st.session_state["predictions"]


def render_dashboard_body(poller: DataPoller, fetcher: PredictionFetcher) -> None:
    poller.touch()
    state = poller.state
    if state.error:
        st.error(f"Error loading data: {state.error}")
    if state.loading and state.stats is None:
        st.caption("Loading usage data...")

    render_kpi_cards(state.stats)

    usage_df = build_usage_records_df(state.data)
    daily = aggregate_usage_by_day(usage_df)
    left, right = st.columns(2)
    left.plotly_chart(cost_chart(daily), use_container_width=True)
    right.plotly_chart(token_chart(daily), use_container_width=True)

    left, right = st.columns(2)
    left.plotly_chart(request_chart(daily), use_container_width=True)
    with right:
        render_prediction_panel(fetcher.state)

    with st.expander("Usage by model", expanded=False):
        st.dataframe(build_model_breakdown(usage_df), use_container_width=True, hide_index=True)


def render_dashboard(runner: BackgroundLoop, shell: DashboardShell) -> None:
    poller, fetcher = _dashboard_hooks(runner, shell)
    controls = render_dashboard_controls(poller.period, poller.auto_refresh)

    if controls.auto_refresh != poller.auto_refresh:
        runner.run(poller.set_auto_refresh(controls.auto_refresh))
    if controls.period != poller.period:
        runner.run(poller.set_period(controls.period))
        st.session_state.pop("export_payload", None)
    if controls.refresh_clicked:
        runner.run(poller.refetch())
    if controls.export_clicked:
        try:
            payload = runner.run(shell.gateway.export_usage(poller.period))
        except GatewayError:
            payload = None
        if payload is not None:
            st.session_state["export_payload"] = (build_export_filename(int(time.time() * 1000)), payload)

    export: Any = st.session_state.get("export_payload")
    if export is not None:
        filename, payload = export
        st.download_button("Download export", data=payload, file_name=filename, mime="application/json")

    if poller.auto_refresh:
        refresh_every = shell.settings.refresh_interval_seconds
        st.fragment(run_every=refresh_every)(render_dashboard_body)(poller, fetcher)
    else:
        render_dashboard_body(poller, fetcher)


def render_sidebar(runner: BackgroundLoop, shell: DashboardShell, route: str) -> None:
    user = shell.store.session.user or {}
    st.sidebar.header(str(user.get("name") or user.get("email") or "Account"))
    if st.sidebar.button("Dashboard", disabled=route == DASHBOARD_ROUTE):
        _go(DASHBOARD_ROUTE)
    if st.sidebar.button("Settings", disabled=route == SETTINGS_ROUTE):
        _go(SETTINGS_ROUTE)
    if st.sidebar.button("Logout"):
        _release_dashboard(runner)
        runner.call(shell.store.logout)
        _go(LOGIN_ROUTE)


def render_route(runner: BackgroundLoop, shell: DashboardShell, route: str) -> None:
    if route == LOGIN_ROUTE:
        render_login(runner, shell)
        return
    if route == REGISTER_ROUTE:
        render_register(runner, shell)
        return

    render_sidebar(runner, shell, route)
    if route == SETTINGS_ROUTE:
        _release_dashboard(runner)
        render_settings(runner, shell)
    else:
        render_dashboard(runner, shell)


def main() -> None:
    load_dotenv()
    st.set_page_config(page_title="API Usage Dashboard", page_icon="📊", layout="wide")
    apply_app_styles()

    runner, shell = _runtime()
    route = _guard_route(runner, shell)
    show_notifications(shell.notifications.drain())

    render_header()
    render_route(runner, shell, route)
    # Failures reported while handling this run's actions.
    show_notifications(shell.notifications.drain())


if __name__ == "__main__":
    main()
