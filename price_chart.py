"""Plotly figure for the historical price series."""

from __future__ import annotations

from typing import Sequence

import pandas as pd
import plotly.graph_objects as go

# Dark theme matching the dashboard CSS
PLOTLY_TEMPLATE = "plotly_dark"
PLOT_TITLE_COLOR = "#f8fafc"
PLOT_TEXT_COLOR = "#94a3b8"
PLOT_PANEL_BG = "rgba(15, 15, 30, 0.95)"
PLOT_BORDER = "rgba(99, 102, 241, 0.2)"
PLOT_GRID_COLOR = "rgba(148, 163, 184, 0.08)"
PLOT_LINE_COLOR = "#6366f1"


def series_to_frame(points: Sequence) -> pd.DataFrame:
    """(timestamp_ms, price) pairs -> DataFrame indexed by UTC datetime."""
    frame = pd.DataFrame(list(points), columns=['timestamp', 'price']).astype(
        {'timestamp': 'int64', 'price': 'float64'}
    )
    frame.index = pd.to_datetime(frame['timestamp'], unit='ms', utc=True)
    frame.index.name = 'date'
    return frame


def build_price_chart(points: Sequence, asset: str = '', height: int = 420) -> go.Figure:
    """
    Line chart of price over time, one trace point per sample

    Args:
        points: Time-ordered (timestamp_ms, price) pairs
        asset: Asset id used in the title
        height: Figure height in pixels
    """
    frame = series_to_frame(points)

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=frame.index,
        y=frame['price'].astype(float),
        mode='lines',
        name='Price (USD)',
        line=dict(color=PLOT_LINE_COLOR, width=2),
        fill='tozeroy',
        fillcolor='rgba(99, 102, 241, 0.1)',
        hovertemplate='<b>%{x|%Y-%m-%d}</b><br>$%{y:,.2f}<extra></extra>'
    ))

    title = f'{asset.capitalize()} Price (USD)' if asset else 'Price (USD)'
    fig.update_layout(
        title=dict(
            text=title,
            font=dict(size=16, color=PLOT_TITLE_COLOR)
        ),
        xaxis_title='Date',
        yaxis_title='Price (USD)',
        hovermode='x unified',
        height=height,
        template=PLOTLY_TEMPLATE,
        paper_bgcolor=PLOT_PANEL_BG,
        plot_bgcolor=PLOT_PANEL_BG,
        font=dict(size=11, color=PLOT_TEXT_COLOR),
        margin=dict(t=60, b=40, l=60, r=40),
        showlegend=False,
        xaxis=dict(
            type='date',
            tickformat='%Y-%m-%d',
            gridcolor=PLOT_GRID_COLOR,
            linecolor=PLOT_BORDER,
            tickfont=dict(color=PLOT_TEXT_COLOR),
            title_font=dict(color=PLOT_TEXT_COLOR)
        ),
        yaxis=dict(
            gridcolor=PLOT_GRID_COLOR,
            linecolor=PLOT_BORDER,
            tickfont=dict(color=PLOT_TEXT_COLOR),
            title_font=dict(color=PLOT_TEXT_COLOR),
            tickprefix='$',
            tickformat=',~f'
        )
    )
    return fig
