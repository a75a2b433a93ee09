"""Typed records decoded from API payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class LoginCredentials:
    email: str
    password: str

    def to_payload(self) -> dict[str, str]:
        return {"email": self.email, "password": self.password}


@dataclass(frozen=True)
class Registration:
    name: str
    organization: str
    email: str
    password: str

    def to_payload(self) -> dict[str, str]:
        return {
            "name": self.name,
            "organization": self.organization,
            "email": self.email,
            "password": self.password,
        }


@dataclass(frozen=True)
class UserSettingsUpdate:
    name: str | None = None
    organization: str | None = None
    password: str | None = None
    confirm_password: str | None = None

    def to_payload(self) -> dict[str, str]:
        # Blank password means "keep current" and is left out of the body.
        payload: dict[str, str] = {}
        if self.name is not None:
            payload["name"] = self.name
        if self.organization is not None:
            payload["organization"] = self.organization
        if self.password:
            payload["password"] = self.password
        return payload


@dataclass(frozen=True)
class UsageRecord:
    timestamp: str
    model_name: str
    total_tokens: int
    cost: float
    errors: int
    input_tokens: int = 0
    output_tokens: int = 0
    requests: int = 0

    @classmethod
    def from_payload(cls, row: dict[str, Any]) -> "UsageRecord":
        return cls(
            timestamp=str(row.get("timestamp") or ""),
            model_name=row.get("model_name") or "unknown",
            total_tokens=_to_int(row.get("total_tokens")),
            cost=_to_float(row.get("cost")),
            errors=_to_int(row.get("errors")),
            input_tokens=_to_int(row.get("input_tokens")),
            output_tokens=_to_int(row.get("output_tokens")),
            requests=_to_int(row.get("requests")),
        )


@dataclass(frozen=True)
class StatsSummary:
    total_cost: float = 0.0
    total_tokens: int = 0
    total_requests: int = 0
    error_rate: float = 0.0
    cost_trend: float | None = None
    token_trend: float | None = None
    request_trend: float | None = None
    error_trend: float | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "StatsSummary":
        payload = payload or {}
        return cls(
            total_cost=_to_float(payload.get("total_cost")),
            total_tokens=_to_int(payload.get("total_tokens")),
            total_requests=_to_int(payload.get("total_requests")),
            error_rate=_to_float(payload.get("error_rate")),
            cost_trend=_optional_float(payload.get("cost_trend")),
            token_trend=_optional_float(payload.get("token_trend")),
            request_trend=_optional_float(payload.get("request_trend")),
            error_trend=_optional_float(payload.get("error_trend")),
        )


@dataclass(frozen=True)
class Prediction:
    prediction_date: str | None = None
    predicted_daily_cost: float | None = None
    predicted_weekly_cost: float | None = None
    predicted_monthly_cost: float | None = None
    confidence_score: float | None = None
    model_used: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_payload(cls, row: Any) -> "Prediction":
        if not isinstance(row, dict):
            return cls(raw={"value": row})
        return cls(
            prediction_date=row.get("prediction_date"),
            predicted_daily_cost=_optional_float(row.get("predicted_daily_cost")),
            predicted_weekly_cost=_optional_float(row.get("predicted_weekly_cost")),
            predicted_monthly_cost=_optional_float(row.get("predicted_monthly_cost")),
            confidence_score=_optional_float(row.get("confidence_score")),
            model_used=row.get("model_used"),
            raw=dict(row),
        )


def parse_usage_records(payload: Any) -> list[UsageRecord]:
    if not isinstance(payload, list):
        return []
    return [UsageRecord.from_payload(row) for row in payload if isinstance(row, dict)]


def parse_predictions(payload: Any) -> list[Prediction]:
    if not isinstance(payload, list):
        return []
    return [Prediction.from_payload(row) for row in payload]


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
