"""Client-side session and data retrieval for the API usage dashboard."""

from usage_dashboard.gateway import ErrorKind, GatewayError, RequestGateway
from usage_dashboard.polling import DataPoller
from usage_dashboard.predictions import PredictionFetcher
from usage_dashboard.session import Session, SessionStatus, SessionStore
from usage_dashboard.shell import DashboardShell

__all__ = [
    "DashboardShell",
    "DataPoller",
    "ErrorKind",
    "GatewayError",
    "PredictionFetcher",
    "RequestGateway",
    "Session",
    "SessionStatus",
    "SessionStore",
]
