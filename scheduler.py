"""
Repeating Task Scheduler
========================

Runs a callable once immediately and then at a fixed interval on a daemon
thread, until cancelled or its keep_running check says it is no longer needed.
"""

import threading
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTask:
    """
    Cancellable fixed-interval task

    The interval is measured from the end of one run to the start of the next,
    so a slow run never overlaps with the following one.

    Args:
        interval_seconds: Pause between runs
        func: Called once per run
        name: Thread name, also used in log messages
        keep_running: Checked before every run; returning False ends the loop
        on_stop: Called once on the timer thread when the loop ends
    """

    def __init__(
        self,
        interval_seconds: float,
        func: Callable[[], object],
        name: str = 'refresh-timer',
        keep_running: Optional[Callable[[], bool]] = None,
        on_stop: Optional[Callable[[], object]] = None
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.interval_seconds = interval_seconds
        self.func = func
        self.name = name
        self.keep_running = keep_running
        self.on_stop = on_stop
        self.run_count = 0

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> 'RepeatingTask':
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"{self.name} started (every {self.interval_seconds:g}s)")
        return self

    def cancel(self):
        self._stop.set()
        logger.info(f"{self.name} cancelled after {self.run_count} runs")

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self):
        try:
            while not self._stop.is_set():
                if self.keep_running is not None and not self.keep_running():
                    logger.info(f"{self.name} stopping after {self.run_count} runs (no longer needed)")
                    self._stop.set()
                    break
                try:
                    self.func()
                except Exception:
                    # One failed run must not end the schedule
                    logger.exception(f"{self.name}: run failed")
                self.run_count += 1
                if self._stop.wait(self.interval_seconds):
                    break
        finally:
            if self.on_stop is not None:
                try:
                    self.on_stop()
                except Exception:
                    logger.exception(f"{self.name}: on_stop failed")
