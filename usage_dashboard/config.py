"""Application configuration for the API usage dashboard client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

API_BASE_URL = "http://localhost:3000/api/v1"

AUTH_LOGIN_ENDPOINT = "/auth/login"
AUTH_REGISTER_ENDPOINT = "/auth/register"
AUTH_LOGOUT_ENDPOINT = "/auth/logout"
AUTH_ME_ENDPOINT = "/auth/me"
USAGE_ENDPOINT = "/usage"
USAGE_STATS_ENDPOINT = "/usage/stats"
USAGE_EXPORT_ENDPOINT = "/usage/export"
PREDICTIONS_ENDPOINT = "/predictions"
PREDICTIONS_GENERATE_ENDPOINT = "/predictions/generate"
USER_SETTINGS_ENDPOINT = "/user/settings"
API_KEYS_ENDPOINT = "/api-keys"
ANALYTICS_OVERVIEW_ENDPOINT = "/analytics/overview"
ANALYTICS_ANOMALIES_ENDPOINT = "/analytics/anomalies"

PERIOD_OPTIONS = ("24h", "7d", "30d", "90d")
DEFAULT_PERIOD = "7d"

PERIOD_LABELS = {
    "24h": "Last 24 hours",
    "7d": "Last 7 days",
    "30d": "Last 30 days",
    "90d": "Last 90 days",
}

REQUEST_TIMEOUT_SECONDS = 30
AUTO_REFRESH_INTERVAL_SECONDS = 30
# Pollers whose page stopped rendering for this long are stopped.
POLLER_IDLE_TIMEOUT_SECONDS = AUTO_REFRESH_INTERVAL_SECONDS * 4

STORAGE_KEY = "auth-storage"

LOGIN_ROUTE = "login"
REGISTER_ROUTE = "register"
DASHBOARD_ROUTE = "dashboard"
SETTINGS_ROUTE = "settings"

SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."

ENV_API_URL = "USAGE_API_URL"
ENV_SESSION_FILE = "USAGE_DASHBOARD_SESSION_FILE"

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_SESSION_FILE = _PROJECT_ROOT / "data" / ".session" / f"{STORAGE_KEY}.json"


@dataclass(frozen=True)
class Settings:
    api_base_url: str = API_BASE_URL
    session_file: Path = DEFAULT_SESSION_FILE
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    refresh_interval_seconds: float = AUTO_REFRESH_INTERVAL_SECONDS
    idle_timeout_seconds: float = POLLER_IDLE_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment, falling back to defaults."""
        base_url = os.getenv(ENV_API_URL, "").strip() or API_BASE_URL
        session_file = os.getenv(ENV_SESSION_FILE, "").strip()
        return cls(
            api_base_url=base_url.rstrip("/"),
            session_file=Path(session_file) if session_file else DEFAULT_SESSION_FILE,
        )
