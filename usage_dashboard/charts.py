"""Plotly chart builders for the Streamlit dashboard."""

from __future__ import annotations

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

PLOTLY_TEMPLATE = "plotly_white"


def empty_figure(message: str) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(
        x=0.5,
        y=0.5,
        text=message,
        showarrow=False,
        xref="paper",
        yref="paper",
        font={"size": 14},
    )
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    fig.update_layout(template=PLOTLY_TEMPLATE, height=300, margin=dict(l=10, r=10, t=40, b=10))
    return fig


def cost_chart(daily_usage: pd.DataFrame) -> go.Figure:
    if daily_usage.empty:
        return empty_figure("No cost data for selected period")

    fig = px.area(
        daily_usage,
        x="period",
        y="cost",
        title="Cost Over Time",
        labels={"period": "Date", "cost": "Cost (USD)"},
        template=PLOTLY_TEMPLATE,
    )
    fig.update_traces(line={"width": 2})
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=50, b=10))
    return fig


def token_chart(daily_usage: pd.DataFrame) -> go.Figure:
    if daily_usage.empty:
        return empty_figure("No token usage for selected period")

    fig = px.line(
        daily_usage,
        x="period",
        y="total_tokens",
        title="Token Usage",
        labels={"period": "Date", "total_tokens": "Tokens"},
        template=PLOTLY_TEMPLATE,
    )
    fig.update_traces(line={"width": 2})
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=50, b=10))
    return fig


def request_chart(daily_usage: pd.DataFrame) -> go.Figure:
    if daily_usage.empty:
        return empty_figure("No requests for selected period")

    fig = px.bar(
        daily_usage,
        x="period",
        y="requests",
        title="Requests",
        labels={"period": "Date", "requests": "Requests"},
        template=PLOTLY_TEMPLATE,
    )
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=50, b=10), showlegend=False)
    return fig
