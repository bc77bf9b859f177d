"""
lightwatch — light sensor monitor.

Polls the sensor feed on a fixed interval, tracks which lights are on
using delta hysteresis, and raises one grouped, rate-limited alert per
cycle in which lights changed state.

Usage
-----
    # Run continuously (settings from config/settings.json)
    python main.py

    # Single poll cycle, then exit (exit code 1 if the fetch failed)
    python main.py --run-once

    # Override the feed URL and poll interval
    python main.py --url http://localhost:8080/AMIO-API --interval 10

    # Verbose (DEBUG) logging
    python main.py --verbose
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from lightwatch.bus import SnapshotBus
from lightwatch.models import AggregateView
from lightwatch.monitor import LightMonitor
from lightwatch.scheduler import PollScheduler
from lightwatch.settings import ConfigStore

_DEFAULT_CONFIG_DIR = "config"

log = logging.getLogger("lightwatch")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lightwatch",
        description="Light sensor monitor with grouped change alerts",
    )
    parser.add_argument(
        "--config-dir",
        default=_DEFAULT_CONFIG_DIR,
        metavar="DIR",
        help="Directory containing settings.json (default: config/)",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Override the feed URL (default: server_url from settings.json)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        metavar="SECS",
        help="Override the poll interval in seconds",
    )
    parser.add_argument(
        "--run-once",
        action="store_true",
        default=False,
        help="Execute a single poll cycle then exit (default: run continuously)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        default=False,
        help="Enable DEBUG logging",
    )
    return parser.parse_args()


def _configure_logging(verbose: bool, log_level: str = "INFO") -> None:
    level = logging.DEBUG if verbose else getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _log_snapshot(view: AggregateView) -> None:
    log.info(
        "%s — sensors=%d, lights_on=%d",
        view.status_message, view.sensor_count, view.lights_on_count,
    )


def main() -> int:
    args = _parse_args()
    load_dotenv()

    config = ConfigStore(args.config_dir)
    _configure_logging(args.verbose, config.get().log_level)

    overrides = {}
    if args.url:
        overrides["server_url"] = args.url
    if args.interval is not None:
        overrides["poll_interval_seconds"] = args.interval

    try:
        if overrides:
            config.update(**overrides)
        bus = SnapshotBus(async_dispatch=not args.run_once)
        monitor = LightMonitor.from_config(config, bus)
    except KeyError as exc:
        logging.error("Missing required environment variable: %s", exc)
        return 1
    except ValueError as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    bus.subscribe(_log_snapshot)
    scheduler = PollScheduler(monitor)

    try:
        if args.run_once:
            stats = scheduler.run_once()
            return 0 if stats["fetch_ok"] else 1
        scheduler.run_forever()
    finally:
        monitor.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
