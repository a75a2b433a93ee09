"""Display formatting for dashboard values."""

from __future__ import annotations


def format_currency(value: float | None) -> str:
    if value is None:
        return "$0.00"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_number(value: float | None) -> str:
    if value is None:
        return "0"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_percent(value: float | None) -> str:
    return f"{(value or 0.0):.2f}%"


def format_trend(value: float | None) -> str | None:
    if value is None:
        return None
    return f"{value:+.1f}%"


def build_export_filename(epoch_ms: int) -> str:
    return f"usage-export-{epoch_ms}.json"
