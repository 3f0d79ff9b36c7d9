"""
Price Predictor - Linear Trend Extrapolation
============================================

Ordinary least-squares regression of price against raw epoch-millisecond
timestamps, extrapolated to a fixed horizon past the current time.

The closed-form sums are evaluated on the raw timestamps (~1.7e12), so
sumX2 and sumXY reach ~1e27 and the slope suffers cancellation when the
window is small or tightly clustered. `predict_centered` removes the mean
timestamp first and is the numerically stable alternative.

Degenerate windows (fewer than two samples, identical timestamps) do not
raise: the division produces NaN or +/-inf and callers decide what to show.
"""

import time
import logging
from typing import NamedTuple, Sequence, Tuple, Optional

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 30
MS_PER_HOUR = 3_600_000
DEFAULT_HORIZON_MS = 24 * MS_PER_HOUR


class Sample(NamedTuple):
    """One (timestamp, price) observation; timestamp in epoch milliseconds"""
    timestamp: int
    price: float


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


def _window_arrays(series: Sequence, window: int) -> Tuple[np.ndarray, np.ndarray]:
    recent = list(series)[-window:] if window > 0 else []
    x = np.array([float(ts) for ts, _ in recent], dtype=np.float64)
    y = np.array([float(price) for _, price in recent], dtype=np.float64)
    return x, y


def _ols(x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
    n = float(len(x))
    sum_x = float(np.sum(x))
    sum_y = float(np.sum(y))
    sum_xy = float(np.sum(x * y))
    sum_x2 = float(np.sum(x * x))

    with np.errstate(divide='ignore', invalid='ignore'):
        slope = np.float64(n * sum_xy - sum_x * sum_y) / np.float64(n * sum_x2 - sum_x * sum_x)
        intercept = (np.float64(sum_y) - slope * sum_x) / np.float64(n)
    return float(slope), float(intercept)


def regression_line(series: Sequence, window: int = DEFAULT_WINDOW) -> Tuple[float, float]:
    """
    Fit price = slope * timestamp + intercept over the last `window` samples

    Args:
        series: Time-ordered (timestamp_ms, price) pairs
        window: Maximum number of trailing samples to use

    Returns:
        (slope, intercept); either may be NaN/inf for degenerate input
    """
    x, y = _window_arrays(series, window)
    return _ols(x, y)


def predict(
    series: Sequence,
    now: Optional[int] = None,
    window: int = DEFAULT_WINDOW,
    horizon_ms: int = DEFAULT_HORIZON_MS
) -> float:
    """
    Extrapolate the linear trend of the last `window` samples to now + horizon

    Args:
        series: Time-ordered (timestamp_ms, price) pairs
        now: Reference time in epoch ms (defaults to the wall clock)
        window: Maximum number of trailing samples to use
        horizon_ms: Distance past `now` to predict at

    Returns:
        Predicted price in USD; NaN or +/-inf when the fit is undefined
    """
    slope, intercept = regression_line(series, window)
    target = float((now_ms() if now is None else now) + horizon_ms)
    with np.errstate(invalid='ignore', over='ignore'):
        return float(np.float64(slope) * target + intercept)


def predict_centered(
    series: Sequence,
    now: Optional[int] = None,
    window: int = DEFAULT_WINDOW,
    horizon_ms: int = DEFAULT_HORIZON_MS
) -> float:
    """Same contract as `predict`, with timestamps centred on their mean before fitting"""
    x, y = _window_arrays(series, window)
    target = float((now_ms() if now is None else now) + horizon_ms)

    with np.errstate(invalid='ignore', divide='ignore'):
        origin = float(np.mean(x)) if len(x) else 0.0
    slope, intercept = _ols(x - origin, y)
    with np.errstate(invalid='ignore', over='ignore'):
        return float(np.float64(slope) * (target - origin) + intercept)


class PricePredictor:
    """Configured linear-trend predictor used by the refresh cycle"""

    def __init__(self, window: int = DEFAULT_WINDOW, horizon_hours: float = 24, centered: bool = False):
        self.window = window
        self.horizon_ms = int(horizon_hours * MS_PER_HOUR)
        self.centered = centered

    @classmethod
    def from_config(cls, config) -> 'PricePredictor':
        settings = config.PREDICTION
        return cls(
            window=settings['window'],
            horizon_hours=settings['horizon_hours'],
            centered=settings['centered']
        )

    def predict(self, series: Sequence, now: Optional[int] = None) -> float:
        fn = predict_centered if self.centered else predict
        prediction = fn(series, now=now, window=self.window, horizon_ms=self.horizon_ms)

        if not np.isfinite(prediction):
            logger.warning(
                f"Regression over {min(len(series), self.window)} samples is degenerate "
                f"(prediction={prediction})"
            )
        return prediction
