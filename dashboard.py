"""
Crypto Price Dashboard
Live CoinGecko price, 365-day chart and a 24h linear-trend prediction
"""

from __future__ import annotations

import logging
from datetime import timedelta

import streamlit as st

from config import Config, setup_logging
from formatting import PRICE_LOADING
from price_chart import build_price_chart
from refresh_cycle import CycleStatus, DashboardSession, DisplayState

logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="Crypto Dashboard",
    layout="wide",
    initial_sidebar_state="collapsed",
)

st.markdown("""
    <style>
    * {
        font-family: 'Inter', -apple-system, BlinkMacSystemFont, sans-serif;
    }
    .price-display {
        font-size: 2.4rem;
        font-weight: 800;
        color: #f8fafc;
        letter-spacing: 0.5px;
    }
    .prediction-display {
        padding: 0.6rem 1rem;
        border-radius: 12px;
        border: 1px solid rgba(99, 102, 241, 0.28);
        background: rgba(30, 30, 50, 0.85);
        color: #f8fafc;
        font-weight: 600;
    }
    .status-pill {
        display: inline-block;
        padding: 0.2rem 0.7rem;
        border-radius: 999px;
        font-size: 0.8rem;
        background: rgba(30, 30, 50, 0.6);
        color: #94a3b8;
    }
    </style>
""", unsafe_allow_html=True)


def _get_session() -> DashboardSession:
    """One controller + timer per browser session.

    Created on first run, and again if the previous timer stopped after the
    page went unrendered for longer than the idle timeout.
    """
    timer = st.session_state.get("refresh_timer")
    if timer is None or not timer.is_running:
        setup_logging()
        session = DashboardSession.from_config(Config, asset=st.session_state.get("asset_select"))
        timer = session.start_polling(
            Config.refresh_interval_seconds(),
            Config.DASHBOARD["session_idle_timeout_seconds"],
        )
        st.session_state.dashboard_session = session
        st.session_state.refresh_timer = timer
        logger.info("Dashboard session created")
    return st.session_state.dashboard_session


def _on_asset_change() -> None:
    session = _get_session()
    session.select_asset(st.session_state.asset_select)


def _render_status(state: DisplayState) -> None:
    labels = {
        CycleStatus.IDLE: "Idle",
        CycleStatus.LOADING: "Loading",
        CycleStatus.DISPLAYED: "Live",
        CycleStatus.FAILED: "Error",
    }
    updated = state.updated_at.strftime('%H:%M:%S UTC') if state.updated_at else "never"
    st.markdown(
        f"<span class=\"status-pill\">{labels[state.status]}</span> "
        f"<span class=\"status-pill\">Updated: {updated}</span>",
        unsafe_allow_html=True,
    )


@st.fragment(run_every=timedelta(seconds=Config.DASHBOARD['render_interval_seconds']))
def _render_live_panel() -> None:
    session = _get_session()
    session.touch()
    state = session.snapshot()

    _render_status(state)

    head_cols = st.columns([1, 6])
    with head_cols[0]:
        if state.image_url:
            st.image(state.image_url, caption=state.image_alt, width=64)
        elif state.image_alt:
            st.caption(state.image_alt)
    with head_cols[1]:
        st.markdown(
            f"<div class=\"price-display\">{state.price_text or PRICE_LOADING}</div>",
            unsafe_allow_html=True,
        )

    st.markdown(
        f"<div class=\"prediction-display\">{state.prediction_text}</div>",
        unsafe_allow_html=True,
    )

    if state.chart_points:
        st.plotly_chart(build_price_chart(state.chart_points, state.asset), width='stretch')
    elif state.status == CycleStatus.FAILED:
        st.info("The data API may be temporarily unavailable. The next refresh will try again.")


def main():
    session = _get_session()

    st.markdown("## Crypto Price Dashboard")

    assets = list(Config.DASHBOARD['assets'])
    if session.selected_asset not in assets:
        assets.insert(0, session.selected_asset)

    st.selectbox(
        "Cryptocurrency",
        assets,
        index=assets.index(session.selected_asset),
        key="asset_select",
        on_change=_on_asset_change,
    )

    _render_live_panel()

    st.caption(
        f"Refreshes every {Config.refresh_interval_seconds():g}s. "
        f"Prediction extrapolates a linear trend over the last {Config.PREDICTION['window']} daily prices."
    )


if __name__ == "__main__":
    main()
