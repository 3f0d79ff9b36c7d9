"""
Main Application - Headless Dashboard Watcher
=============================================

Runs the same refresh cycle as the Streamlit dashboard without a browser:
fetch, join, predict and log the displayed state every interval.

    python main.py --asset ethereum
    python main.py --once --centered
"""

import argparse
import logging
import time

from config import Config, setup_logging
from refresh_cycle import CycleStatus, DashboardSession, DisplayState
from scheduler import RepeatingTask

logger = logging.getLogger(__name__)


def log_state(state: DisplayState):
    logger.info("=" * 70)
    logger.info(f"{state.asset.upper()} [{state.status.value}] cycle {state.generation}")
    logger.info(f"Price: {state.price_text}")
    logger.info(state.prediction_text)
    if state.chart_points:
        logger.info(f"Chart: {len(state.chart_points)} points")
    logger.info("=" * 70)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Crypto price dashboard (console mode)')
    parser.add_argument('--asset', type=str, default=None,
                        help='CoinGecko asset id (default: from config)')
    parser.add_argument('--interval', type=float, default=None,
                        help='Refresh interval in seconds (default: from config)')
    parser.add_argument('--once', action='store_true',
                        help='Run a single refresh cycle and exit')
    parser.add_argument('--centered', action='store_true',
                        help='Use the mean-centred regression variant')
    parser.add_argument('--config', type=str, default=None,
                        help='JSON file with configuration overrides')
    parser.add_argument('--log-level', type=str, default=None,
                        help='DEBUG, INFO, WARNING or ERROR')
    return parser.parse_args(argv)


def run(args) -> int:
    if args.config:
        Config.load_from_file(args.config)
    if args.asset:
        Config.DASHBOARD['default_asset'] = args.asset
    if args.centered:
        Config.PREDICTION['centered'] = True

    setup_logging(level=args.log_level)

    session = DashboardSession.from_config(Config)

    if args.once:
        state = session.refresh()
        log_state(state)
        session.close()
        return 0 if state.status == CycleStatus.DISPLAYED else 1

    interval = args.interval or Config.refresh_interval_seconds()
    timer = RepeatingTask(interval, lambda: log_state(session.refresh()))
    timer.start()

    try:
        while timer.is_running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping...")
    finally:
        timer.cancel()
        timer.join(timeout=5)
        session.close()
    return 0


def main(argv=None) -> int:
    return run(parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
