"""Root logging setup for the tracker map client.

Console output goes to stdout; an optional size-rotated file receives the
same records. aiohttp's request loggers are held at WARNING so the poll
loop does not flood either sink.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 1024 * 1024
DEFAULT_BACKUP_COUNT = 3

HTTP_LOGGERS = ("aiohttp.access", "aiohttp.client")

_configured = False


def coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level '{level}'")
        return numeric
    return int(level)


def _drop_root_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()


def _console_handler(formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    return handler


def _rotating_file_handler(
    log_file: Union[str, Path], formatter: logging.Formatter, max_bytes: int, backup_count: int
) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def quiet_loggers(names: Iterable[str], level: int = logging.WARNING) -> None:
    for name in names:
        logging.getLogger(name).setLevel(level)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    force: bool = False,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> None:
    """Install the client's root handlers.

    A second call without ``force`` only changes the root level. With
    neither console nor file output a NullHandler keeps records from
    reaching logging's last-resort stderr handler.
    """

    global _configured
    numeric_level = coerce_level(level)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    if _configured and not force:
        return

    _drop_root_handlers(root)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers: list[logging.Handler] = []
    if console:
        handlers.append(_console_handler(formatter))
    if log_file:
        handlers.append(_rotating_file_handler(log_file, formatter, max_bytes, backup_count))
    if not handlers:
        handlers.append(logging.NullHandler())

    for handler in handlers:
        root.addHandler(handler)

    quiet_loggers(HTTP_LOGGERS)
    _configured = True


__all__ = [
    "DEFAULT_BACKUP_COUNT",
    "DEFAULT_MAX_BYTES",
    "HTTP_LOGGERS",
    "LOG_DATEFMT",
    "LOG_FORMAT",
    "configure_logging",
    "coerce_level",
    "quiet_loggers",
]
