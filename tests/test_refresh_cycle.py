import math
import threading
import time

import pytest

from data_collector import CoinGeckoCollector
from formatting import (
    IMAGE_MISSING_ALT,
    PREDICTION_ERROR,
    PREDICTION_LOADING,
    PRICE_ERROR,
    PRICE_LOADING,
)
from mocks import MockCollector, StubHTTPSession, coingecko_routes, daily_prices, make_snapshot
from price_predictor import PricePredictor
from refresh_cycle import CycleStatus, DashboardSession


@pytest.fixture
def session(mock_collector, predictor):
    s = DashboardSession(mock_collector, predictor, asset='bitcoin')
    yield s
    s.close()


def test_initial_state_is_idle(session):
    state = session.snapshot()
    assert state.status == CycleStatus.IDLE
    assert state.asset == 'bitcoin'
    assert state.generation == 0


def test_successful_cycle_displays_everything(session):
    state = session.refresh()

    assert state.status == CycleStatus.DISPLAYED
    assert state.price_text == '$64,321.5'
    assert len(state.chart_points) == 365
    assert state.image_url == 'https://img/small.png'
    assert state.image_alt == 'bitcoin logo'
    assert state.prediction_text.startswith('Price Prediction for next 24hrs: $')
    assert state.prediction_text.endswith(' (based on Linear Regression)')
    assert math.isfinite(state.prediction)
    assert state.generation == 1
    assert state.updated_at is not None


def test_missing_image_sets_placeholder_alt(session):
    session.select_asset('ethereum').result(timeout=5)
    state = session.snapshot()

    assert state.image_url == ''
    assert state.image_alt == IMAGE_MISSING_ALT


def test_failed_cycle_shows_error_texts(predictor):
    session = DashboardSession(MockCollector(fail=True), predictor)
    try:
        state = session.refresh()
    finally:
        session.close()

    assert state.status == CycleStatus.FAILED
    assert state.price_text == PRICE_ERROR
    assert state.prediction_text == PREDICTION_ERROR


def test_unexpected_error_never_escapes(predictor):
    collector = MockCollector()

    def boom(asset):
        raise KeyError(asset)

    collector.on_fetch = boom
    session = DashboardSession(collector, predictor)
    try:
        state = session.refresh()
    finally:
        session.close()

    assert state.status == CycleStatus.FAILED


def test_loading_placeholders_during_fetch(session, mock_collector):
    seen = {}

    def capture(asset):
        seen['state'] = session.snapshot()

    mock_collector.on_fetch = capture
    session.refresh()

    assert seen['state'].status == CycleStatus.LOADING
    assert seen['state'].price_text == PRICE_LOADING
    assert seen['state'].prediction_text == PREDICTION_LOADING


def test_recovers_on_next_cycle(session, mock_collector):
    mock_collector.fail = True
    assert session.refresh().status == CycleStatus.FAILED

    mock_collector.fail = False
    assert session.refresh().status == CycleStatus.DISPLAYED


def test_non_finite_prediction_is_displayed_literally(predictor):
    collector = MockCollector(snapshots={'bitcoin': make_snapshot('bitcoin', 1.0, count=1)})
    session = DashboardSession(collector, predictor)
    try:
        state = session.refresh()
    finally:
        session.close()

    assert state.status == CycleStatus.DISPLAYED
    assert math.isnan(state.prediction)
    assert state.prediction_text == 'Price Prediction for next 24hrs: $NaN (based on Linear Regression)'


def test_select_asset_refreshes_immediately(session, mock_collector):
    state = session.select_asset('ethereum').result(timeout=5)

    assert session.selected_asset == 'ethereum'
    assert mock_collector.requested == ['ethereum']
    assert state.asset == 'ethereum'
    assert state.price_text == '$3,456.78'


class TestStaleResults:
    def _race(self, session, collector):
        """Start a bitcoin cycle, switch to ethereum while it is in flight, then let bitcoin finish."""
        release = collector.hold('bitcoin')
        slow = session.refresh_async()
        assert collector.entered['bitcoin'].wait(5)

        session.select_asset('ethereum').result(timeout=5)
        release.set()
        slow.result(timeout=5)
        return session.snapshot()

    def test_stale_completion_is_discarded(self, mock_collector, predictor):
        session = DashboardSession(mock_collector, predictor, asset='bitcoin', discard_stale=True)
        try:
            state = self._race(session, mock_collector)
        finally:
            session.close()

        assert state.asset == 'ethereum'
        assert state.price_text == '$3,456.78'
        assert state.generation == 2

    def test_last_write_wins_when_guard_disabled(self, mock_collector, predictor):
        session = DashboardSession(mock_collector, predictor, asset='bitcoin', discard_stale=False)
        try:
            state = self._race(session, mock_collector)
        finally:
            session.close()

        assert state.asset == 'bitcoin'
        assert state.price_text == '$64,321.5'

    def test_stale_failure_is_discarded(self, predictor):
        collector = MockCollector(snapshots={'ethereum': make_snapshot('ethereum', 3456.78)})
        session = DashboardSession(collector, predictor, asset='bitcoin')
        try:
            state = self._race(session, collector)
        finally:
            session.close()

        assert state.status == CycleStatus.DISPLAYED
        assert state.asset == 'ethereum'


def test_ethereum_end_to_end(predictor):
    """Selecting ethereum issues the three documented requests and renders the result."""
    prices = daily_prices(365, start_price=2000.0, step=2.5)
    http = StubHTTPSession(coingecko_routes('ethereum', 3456.78, prices), barrier_parties=3)
    collector = CoinGeckoCollector(session=http)
    session = DashboardSession(collector, predictor, asset='bitcoin')

    try:
        state = session.select_asset('ethereum').result(timeout=10)
    finally:
        session.close()

    assert len(http.calls) == 3
    by_url = {call['url'].rsplit('/api/v3', 1)[1]: call for call in http.calls}
    assert set(by_url) == {'/simple/price', '/coins/ethereum/market_chart', '/coins/ethereum'}
    assert by_url['/simple/price']['params']['ids'] == 'ethereum'
    assert by_url['/coins/ethereum/market_chart']['params'] == {'vs_currency': 'usd', 'days': 365}

    assert state.status == CycleStatus.DISPLAYED
    assert len(state.chart_points) == len(prices)
    assert state.price_text == '$3,456.78'
    assert state.image_alt == 'ethereum logo'


def test_from_config(isolated_config):
    isolated_config.DASHBOARD.update({'default_asset': 'solana', 'discard_stale_results': False})
    session = DashboardSession.from_config(isolated_config, collector=MockCollector())
    try:
        assert session.selected_asset == 'solana'
        assert session.discard_stale is False
        assert isinstance(session.predictor, PricePredictor)
    finally:
        session.close()


def test_snapshot_is_a_copy(session):
    session.refresh()
    state = session.snapshot()
    state.chart_points.clear()
    state.price_text = 'tampered'

    fresh = session.snapshot()
    assert fresh.price_text == '$64,321.5'
    assert len(fresh.chart_points) == 365


def test_concurrent_refreshes_settle_on_latest_generation(session):
    barrier = threading.Barrier(4, timeout=5)

    def worker():
        barrier.wait()
        session.refresh()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    state = session.snapshot()
    assert state.status == CycleStatus.DISPLAYED
    assert state.generation == session.generation == 4


def test_from_config_asset_overrides_default(isolated_config):
    session = DashboardSession.from_config(isolated_config, collector=MockCollector(), asset='ethereum')
    try:
        assert session.selected_asset == 'ethereum'
        assert session.snapshot().asset == 'ethereum'
    finally:
        session.close()


class TestPolling:
    def test_unwatched_session_stops_its_timer(self, mock_collector, predictor):
        session = DashboardSession(mock_collector, predictor)
        task = session.start_polling(0.01, max_idle_seconds=0.2)
        task.join(5)

        assert not task.is_running
        assert mock_collector.requested
        # Timer shut the session down with it
        with pytest.raises(RuntimeError):
            session.refresh_async()

    def test_touched_session_keeps_polling(self, mock_collector, predictor):
        session = DashboardSession(mock_collector, predictor)
        task = session.start_polling(0.01, max_idle_seconds=1.0)
        try:
            deadline = time.monotonic() + 0.5
            while time.monotonic() < deadline:
                session.touch()
                time.sleep(0.02)
            assert task.is_running
            assert task.run_count > 1
        finally:
            task.cancel()
            task.join(5)
        assert not task.is_running

    def test_touch_resets_idle_time(self, session):
        time.sleep(0.05)
        assert session.idle_seconds() >= 0.05
        session.touch()
        assert session.idle_seconds() < 0.05
