"""UI helpers for Streamlit layout and controls."""

from __future__ import annotations

import json
from dataclasses import dataclass

import streamlit as st

from usage_dashboard.config import PERIOD_LABELS, PERIOD_OPTIONS
from usage_dashboard.formatters import format_currency, format_number, format_percent, format_trend
from usage_dashboard.models import LoginCredentials, Registration, StatsSummary, UserSettingsUpdate
from usage_dashboard.notifications import Notification, NotificationLevel
from usage_dashboard.predictions import PredictionState

_TOAST_ICONS = {
    NotificationLevel.SUCCESS: "✅",
    NotificationLevel.INFO: "ℹ️",
    NotificationLevel.ERROR: "⚠️",
}


@dataclass(frozen=True)
class DashboardControls:
    period: str
    auto_refresh: bool
    refresh_clicked: bool
    export_clicked: bool


def apply_app_styles() -> None:
    st.markdown(
        """
        <style>
            .block-container {
                padding-top: 1rem;
                padding-bottom: 2rem;
                max-width: 1250px;
            }
            [data-testid="metric-container"] {
                border: 1px solid #e5e7eb;
                border-radius: 8px;
                padding: 10px 12px;
                background: #f8fafc;
            }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_header() -> None:
    st.title("📊 API Usage Dashboard")
    st.caption("Track and analyze your API usage in real-time")


def show_notifications(notifications: list[Notification]) -> None:
    for notification in notifications:
        st.toast(notification.message, icon=_TOAST_ICONS.get(notification.level))


def render_login_form() -> LoginCredentials | None:
    with st.form("login"):
        st.subheader("Sign in")
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login", type="primary")
    if not submitted:
        return None
    return LoginCredentials(email=email.strip(), password=password)


def render_register_form() -> Registration | None:
    with st.form("register"):
        st.subheader("Create an account")
        name = st.text_input("Name")
        organization = st.text_input("Organization")
        email = st.text_input("Email")
        password = st.text_input(
            "Password",
            type="password",
            help="At least 8 characters with uppercase, lowercase, and a symbol.",
        )
        submitted = st.form_submit_button("Register", type="primary")
    if not submitted:
        return None
    return Registration(
        name=name.strip(),
        organization=organization.strip(),
        email=email.strip(),
        password=password,
    )


def render_settings_form() -> UserSettingsUpdate | None:
    with st.form("settings"):
        st.subheader("Account settings")
        name = st.text_input("Name", placeholder="Your name")
        organization = st.text_input("Organization", placeholder="Your organization")
        password = st.text_input("New password", type="password", placeholder="Leave blank to keep current")
        confirm_password = st.text_input("Confirm new password", type="password")
        submitted = st.form_submit_button("Save Changes", type="primary")
    if not submitted:
        return None
    return UserSettingsUpdate(
        name=name.strip(),
        organization=organization.strip(),
        password=password or None,
        confirm_password=confirm_password or None,
    )


def render_dashboard_controls(period: str, auto_refresh: bool) -> DashboardControls:
    c1, c2, c3, c4 = st.columns([3, 1, 1, 1])
    selected = c1.radio(
        "Period",
        options=list(PERIOD_OPTIONS),
        index=list(PERIOD_OPTIONS).index(period),
        format_func=lambda p: PERIOD_LABELS.get(p, p),
        horizontal=True,
        label_visibility="collapsed",
    )
    auto = c2.toggle("Auto-refresh", value=auto_refresh)
    refresh_clicked = c3.button("Refresh")
    export_clicked = c4.button("Export")
    return DashboardControls(
        period=selected,
        auto_refresh=auto,
        refresh_clicked=refresh_clicked,
        export_clicked=export_clicked,
    )


def render_kpi_cards(stats: StatsSummary | None) -> None:
    stats = stats or StatsSummary()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Cost", format_currency(stats.total_cost), format_trend(stats.cost_trend))
    c2.metric("Total Tokens", format_number(stats.total_tokens), format_trend(stats.token_trend))
    c3.metric("Total Requests", format_number(stats.total_requests), format_trend(stats.request_trend))
    c4.metric(
        "Error Rate",
        format_percent(stats.error_rate),
        format_trend(stats.error_trend),
        delta_color="inverse",
    )


def render_prediction_panel(state: PredictionState) -> None:
    st.subheader("Predictions")
    if state.loading:
        st.caption("Loading predictions...")
        return
    if state.error:
        st.warning(state.error)
        return
    if not state.predictions:
        st.caption("No predictions available.")
        return

    for prediction in state.predictions:
        if prediction.predicted_monthly_cost is None and prediction.predicted_daily_cost is None:
            st.code(json.dumps(prediction.raw, default=str), language="json")
            continue
        c1, c2, c3 = st.columns(3)
        c1.metric("Daily", format_currency(prediction.predicted_daily_cost))
        c2.metric("Weekly", format_currency(prediction.predicted_weekly_cost))
        c3.metric("Monthly", format_currency(prediction.predicted_monthly_cost))
        if prediction.confidence_score is not None:
            st.caption(
                f"Confidence {prediction.confidence_score:.0%} · model {prediction.model_used or 'n/a'}"
            )
