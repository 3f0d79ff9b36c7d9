"""
Refresh Cycle
=============

One DashboardSession per dashboard. It owns the display fields, the current
asset selection and the refresh state machine:

    Idle -> Loading -> {Displayed, Failed}

Cycles can overlap (timer tick and a selection change). Every cycle captures
a generation token when it starts; on fan-in the result is applied only if
no newer cycle has started since. With ``discard_stale=False`` completions
are applied in whatever order they arrive (last write wins).
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from data_collector import CoinGeckoCollector, DataUnavailableError, MarketSnapshot
from formatting import (
    IMAGE_MISSING_ALT,
    PREDICTION_ERROR,
    PREDICTION_LOADING,
    PRICE_ERROR,
    PRICE_LOADING,
    format_prediction,
    format_price,
    image_alt,
)
from price_predictor import PricePredictor, Sample
from scheduler import RepeatingTask

logger = logging.getLogger(__name__)


class CycleStatus(str, Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    DISPLAYED = 'displayed'
    FAILED = 'failed'


@dataclass
class DisplayState:
    """Everything the UI shows; copied out under the session lock"""
    status: CycleStatus = CycleStatus.IDLE
    asset: str = 'bitcoin'
    price_text: str = ''
    prediction_text: str = ''
    image_url: str = ''
    image_alt: str = ''
    chart_points: List[Sample] = field(default_factory=list)
    prediction: Optional[float] = None
    generation: int = 0
    updated_at: Optional[datetime] = None


class DashboardSession:
    """
    Controller for a single dashboard instance

    Args:
        collector: Source of MarketSnapshots
        predictor: Linear-trend predictor applied to each snapshot's series
        asset: Initially selected asset id
        discard_stale: Drop completions from cycles superseded by a newer one
    """

    def __init__(
        self,
        collector: CoinGeckoCollector,
        predictor: PricePredictor,
        asset: str = 'bitcoin',
        discard_stale: bool = True,
    ):
        self.collector = collector
        self.predictor = predictor
        self.discard_stale = discard_stale

        self._lock = threading.Lock()
        self._selected_asset = asset
        self._generation = 0
        self._state = DisplayState(asset=asset)
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='dashboard-refresh')
        self._last_seen = time.monotonic()

    @classmethod
    def from_config(
        cls,
        config,
        collector: Optional[CoinGeckoCollector] = None,
        asset: Optional[str] = None,
    ) -> 'DashboardSession':
        return cls(
            collector=collector or CoinGeckoCollector.from_config(config),
            predictor=PricePredictor.from_config(config),
            asset=asset or config.DASHBOARD['default_asset'],
            discard_stale=config.DASHBOARD['discard_stale_results'],
        )

    @property
    def selected_asset(self) -> str:
        return self._selected_asset

    @property
    def generation(self) -> int:
        return self._generation

    def touch(self):
        """Record that a viewer just rendered this session."""
        self._last_seen = time.monotonic()

    def idle_seconds(self) -> float:
        return time.monotonic() - self._last_seen

    def start_polling(self, interval_seconds: float, max_idle_seconds: float) -> RepeatingTask:
        """
        Refresh every `interval_seconds` while the session is being viewed

        The timer stops itself, and closes the session, once no `touch()` has
        arrived for `max_idle_seconds`.

        Returns:
            The started RepeatingTask
        """
        task = RepeatingTask(
            interval_seconds,
            self.refresh,
            name=f"refresh-timer-{id(self):x}",
            keep_running=lambda: self.idle_seconds() < max_idle_seconds,
            on_stop=self.close,
        )
        return task.start()

    def snapshot(self) -> DisplayState:
        with self._lock:
            return copy.deepcopy(self._state)

    def select_asset(self, asset: str) -> Future:
        """Switch the selected asset and start a cycle for it right away."""
        with self._lock:
            self._selected_asset = asset
        logger.info(f"Asset selection changed to {asset}")
        return self.refresh_async()

    def refresh_async(self) -> Future:
        return self._executor.submit(self.refresh)

    def refresh(self) -> DisplayState:
        """
        Run one full fetch-join-render cycle

        Never raises for data failures; those end the cycle in FAILED.

        Returns:
            Copy of the display state after this cycle settled
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            asset = self._selected_asset
            self._state.status = CycleStatus.LOADING
            self._state.asset = asset
            self._state.generation = generation
            self._state.price_text = PRICE_LOADING
            self._state.prediction_text = PREDICTION_LOADING

        logger.debug(f"Cycle {generation} started for {asset}")

        try:
            snapshot = self.collector.fetch_snapshot(asset)
            prediction = self.predictor.predict(snapshot.series)
        except DataUnavailableError as e:
            logger.error(f"Error updating data for {asset}: {e}")
            self._apply_failure(generation, asset)
        except Exception:
            logger.exception(f"Unexpected error while refreshing {asset}")
            self._apply_failure(generation, asset)
        else:
            self._apply_snapshot(generation, snapshot, prediction)

        return self.snapshot()

    def _is_stale(self, generation: int) -> bool:
        return self.discard_stale and generation != self._generation

    def _apply_snapshot(self, generation: int, snapshot: MarketSnapshot, prediction: float):
        with self._lock:
            if self._is_stale(generation):
                logger.debug(f"Discarding stale cycle {generation} (current {self._generation})")
                return

            state = self._state
            state.status = CycleStatus.DISPLAYED
            state.asset = snapshot.asset
            state.generation = generation
            state.price_text = format_price(snapshot.current_price)
            state.chart_points = list(snapshot.series)
            if snapshot.image_url:
                state.image_url = snapshot.image_url
                state.image_alt = image_alt(snapshot.asset)
            else:
                state.image_url = ''
                state.image_alt = IMAGE_MISSING_ALT
            state.prediction = prediction
            state.prediction_text = format_prediction(prediction)
            state.updated_at = datetime.now(timezone.utc)

        logger.info(f"Cycle {generation} displayed {snapshot.asset}: {state.price_text}, prediction {prediction:.2f}")

    def _apply_failure(self, generation: int, asset: str):
        with self._lock:
            if self._is_stale(generation):
                logger.debug(f"Discarding stale failure from cycle {generation}")
                return

            state = self._state
            state.status = CycleStatus.FAILED
            state.asset = asset
            state.generation = generation
            state.price_text = PRICE_ERROR
            state.prediction_text = PREDICTION_ERROR
            state.updated_at = datetime.now(timezone.utc)

    def close(self):
        self._executor.shutdown(wait=False)
