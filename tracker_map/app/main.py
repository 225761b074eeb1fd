"""Command-line entry point: run the tracker map client headless."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from pathlib import Path
from typing import Optional, Sequence

from tracker_map.config import TrackerMapConfig
from tracker_map.core.config_loader import read_config_async
from tracker_map.core.logging_config import configure_logging
from tracker_map.core.logging_utils import get_module_logger
from tracker_map.tracking.history import HISTORY_RANGES, range_to_window
from tracker_map.tracking.surface import LoggingControlPanel, LoggingMapSurface

from .controller import TrackerMapApp

logger = get_module_logger("Main")

DEFAULT_CONFIG_PATH = Path("tracker_map.conf")

LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tracker-map",
        description="Follow live GPS tracker positions and replay their routes.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="key = value config file (default: %(default)s)",
    )
    parser.add_argument("--base-url", dest="base_url", default=None, help="Tracker server API base URL")
    parser.add_argument("--api-key", dest="api_key", default=None, help="API key sent as X-API-Key")
    parser.add_argument(
        "--poll-interval",
        dest="poll_interval",
        type=float,
        default=None,
        help="Seconds between live snapshot polls",
    )
    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS.keys()),
        default=None,
        help="Logging verbosity",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Optional path for a rotating log file",
    )
    parser.add_argument(
        "--no-console-log",
        dest="log_console",
        action="store_false",
        default=None,
        help="Do not write log records to stdout",
    )
    parser.add_argument(
        "--range",
        dest="history_range",
        choices=list(HISTORY_RANGES.keys()),
        default="1h",
        help="History window used by --replay",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Playback speed multiplier",
    )
    parser.add_argument(
        "--replay",
        metavar="TRACKER_ID",
        default=None,
        help="Replay this tracker's history after startup",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def install_signal_handlers(stop_event: asyncio.Event, loop: asyncio.AbstractEventLoop) -> None:
    """Register SIGINT/SIGTERM handlers that request shutdown."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)


async def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    prefs = await read_config_async(args.config)
    config = TrackerMapConfig.from_preferences(prefs, args)

    configure_logging(
        config.log_level,
        force=True,
        console=config.log_console,
        log_file=config.log_file,
        max_bytes=config.log_max_bytes,
        backup_count=config.log_backup_count,
    )
    logger.info("Starting tracker map client for %s", config.normalized_base_url)
    logger.debug("Config: %s", config.to_dict())

    panel = LoggingControlPanel(speed=args.speed, history_range=args.history_range)
    app = TrackerMapApp(config, LoggingMapSurface(), panel)

    stop_event = asyncio.Event()
    install_signal_handlers(stop_event, asyncio.get_running_loop())

    try:
        if not await app.initialize():
            return 1
        if args.replay:
            window = range_to_window(args.history_range)
            if window.total_seconds() <= 0:
                logger.warning("--replay needs a history range other than 'off'")
            else:
                await app.replay_history(args.replay, window)
        await stop_event.wait()
    finally:
        await app.shutdown()
    return 0


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Synchronous wrapper used by the console script."""
    return asyncio.run(main(argv))


__all__ = ["main", "parse_args", "run"]
