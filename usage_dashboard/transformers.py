"""Usage records into pandas DataFrames for charts and tables."""

from __future__ import annotations

from collections.abc import Iterable

import pandas as pd

from usage_dashboard.models import UsageRecord

USAGE_RECORD_COLUMNS = [
    "timestamp",
    "model_name",
    "input_tokens",
    "output_tokens",
    "total_tokens",
    "requests",
    "cost",
    "errors",
]

DAILY_USAGE_COLUMNS = ["period", "cost", "total_tokens", "requests", "errors"]


def build_usage_records_df(records: Iterable[UsageRecord]) -> pd.DataFrame:
    rows = [
        {
            "timestamp": record.timestamp,
            "model_name": record.model_name,
            "input_tokens": record.input_tokens,
            "output_tokens": record.output_tokens,
            "total_tokens": record.total_tokens,
            "requests": record.requests,
            "cost": record.cost,
            "errors": record.errors,
        }
        for record in records
    ]

    df = pd.DataFrame(rows, columns=USAGE_RECORD_COLUMNS)
    if df.empty:
        return df

    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    for col in ["input_tokens", "output_tokens", "total_tokens", "requests", "errors"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
    df["cost"] = pd.to_numeric(df["cost"], errors="coerce").fillna(0.0)
    return df


def aggregate_usage_by_day(usage_df: pd.DataFrame) -> pd.DataFrame:
    """Roll records up to one row per UTC day."""
    if usage_df.empty:
        return pd.DataFrame(columns=DAILY_USAGE_COLUMNS)

    valid = usage_df.dropna(subset=["timestamp"])
    if valid.empty:
        return pd.DataFrame(columns=DAILY_USAGE_COLUMNS)

    period_source = valid["timestamp"].dt.tz_localize(None).dt.floor("D")
    grouped = (
        valid.assign(period=period_source)
        .groupby("period", as_index=False)
        .agg(
            cost=("cost", "sum"),
            total_tokens=("total_tokens", "sum"),
            requests=("requests", "sum"),
            errors=("errors", "sum"),
        )
        .sort_values("period")
    )
    return grouped[DAILY_USAGE_COLUMNS]


def build_model_breakdown(usage_df: pd.DataFrame) -> pd.DataFrame:
    if usage_df.empty:
        return pd.DataFrame(columns=["model_name", "total_tokens", "cost", "errors"])

    return (
        usage_df.groupby("model_name", as_index=False)
        .agg(total_tokens=("total_tokens", "sum"), cost=("cost", "sum"), errors=("errors", "sum"))
        .sort_values("cost", ascending=False)
    )
