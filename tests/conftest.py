"""
Pytest configuration and shared fixtures for the crypto dashboard tests.
"""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import Config  # noqa: E402
from price_predictor import PricePredictor, Sample  # noqa: E402
from mocks import DAY_MS, NOW_MS, MockCollector, make_snapshot  # noqa: E402


@pytest.fixture
def now_ms():
    return NOW_MS


@pytest.fixture
def linear_series():
    """Four daily samples ending at NOW_MS, prices 100..103."""
    return [Sample(NOW_MS - k * DAY_MS, 100.0 + (3 - k)) for k in range(3, -1, -1)]


@pytest.fixture
def predictor():
    return PricePredictor(window=30, horizon_hours=24)


@pytest.fixture
def mock_collector():
    return MockCollector(snapshots={
        'bitcoin': make_snapshot('bitcoin', 64321.5, count=365),
        'ethereum': make_snapshot('ethereum', 3456.78, count=365, image_url=None),
    })


@pytest.fixture
def isolated_config(monkeypatch, tmp_path):
    """Give each test its own copy of the mutable Config sections."""
    for section in ('API', 'API_KEYS', 'DASHBOARD', 'PREDICTION', 'LOGGING'):
        monkeypatch.setattr(Config, section, dict(getattr(Config, section)))
    Config.LOGGING['file'] = str(tmp_path / 'logs' / 'test.log')
    return Config
