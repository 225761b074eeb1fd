"""Typed configuration for the tracker map client."""

from __future__ import annotations

import math
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from tracker_map.core.logging_config import DEFAULT_BACKUP_COUNT, DEFAULT_MAX_BYTES, coerce_level
from tracker_map.core.logging_utils import get_module_logger

logger = get_module_logger("Config")

API_KEY_ENV = "TRACKER_MAP_API_KEY"

# Fields that must be a finite number above zero.
_POSITIVE_FIELDS = (
    "request_timeout_s",
    "poll_interval_s",
    "playback_base_interval_ms",
    "playback_min_interval_ms",
    "log_max_bytes",
)
_NON_NEGATIVE_FIELDS = ("playback_speed_factor_ms", "log_backup_count")


# ---------------------------------------------------------------------------
# Type coercion helpers for from_preferences()
# ---------------------------------------------------------------------------


def get_pref_str(prefs: Mapping[str, Any], key: str, default: str) -> str:
    val = prefs.get(key)
    return str(val) if val is not None else default


def get_pref_int(prefs: Mapping[str, Any], key: str, default: int) -> int:
    val = prefs.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except (ValueError, TypeError):
        return default


def get_pref_float(prefs: Mapping[str, Any], key: str, default: float) -> float:
    val = prefs.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except (ValueError, TypeError):
        return default


def get_pref_bool(prefs: Mapping[str, Any], key: str, default: bool) -> bool:
    val = prefs.get(key)
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    text = str(val).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


def get_pref_path(prefs: Mapping[str, Any], key: str, default: Optional[Path]) -> Optional[Path]:
    val = prefs.get(key)
    if val is None or str(val).strip() == "":
        return default
    return Path(str(val))


@dataclass(slots=True)
class TrackerMapConfig:
    """Typed configuration for the tracker map client."""

    # Server
    base_url: str = "http://localhost:8080/api/"
    api_key: str = ""
    request_timeout_s: float = 30.0

    # Live sync
    poll_interval_s: float = 10.0
    degraded_after: int = 3
    recent_track_limit: int = 50

    # Map view
    center_lat: float = 55.691175
    center_lon: float = 12.536550
    zoom: float = 12.0
    focus_zoom: float = 14.0

    # Playback timing (milliseconds)
    playback_base_interval_ms: float = 60.0
    playback_min_interval_ms: float = 16.0
    playback_speed_factor_ms: float = 10.0

    # Display / logging
    timestamp_format: str = "%d.%m.%Y %H.%M.%S"
    log_level: str = "info"
    log_file: Optional[Path] = None
    log_console: bool = True
    log_max_bytes: int = DEFAULT_MAX_BYTES
    log_backup_count: int = DEFAULT_BACKUP_COUNT

    @classmethod
    def from_preferences(
        cls, prefs: Mapping[str, Any], args: Any = None
    ) -> "TrackerMapConfig":
        """Build config from parsed config-file values with optional CLI overrides."""
        defaults = cls()

        config = cls(
            base_url=get_pref_str(prefs, "base_url", defaults.base_url),
            api_key=get_pref_str(prefs, "api_key", defaults.api_key),
            request_timeout_s=get_pref_float(prefs, "request_timeout_s", defaults.request_timeout_s),
            poll_interval_s=get_pref_float(prefs, "poll_interval_s", defaults.poll_interval_s),
            degraded_after=get_pref_int(prefs, "degraded_after", defaults.degraded_after),
            recent_track_limit=get_pref_int(prefs, "recent_track_limit", defaults.recent_track_limit),
            center_lat=get_pref_float(prefs, "center_lat", defaults.center_lat),
            center_lon=get_pref_float(prefs, "center_lon", defaults.center_lon),
            zoom=get_pref_float(prefs, "zoom", defaults.zoom),
            focus_zoom=get_pref_float(prefs, "focus_zoom", defaults.focus_zoom),
            playback_base_interval_ms=get_pref_float(
                prefs, "playback_base_interval_ms", defaults.playback_base_interval_ms
            ),
            playback_min_interval_ms=get_pref_float(
                prefs, "playback_min_interval_ms", defaults.playback_min_interval_ms
            ),
            playback_speed_factor_ms=get_pref_float(
                prefs, "playback_speed_factor_ms", defaults.playback_speed_factor_ms
            ),
            timestamp_format=get_pref_str(prefs, "timestamp_format", defaults.timestamp_format),
            log_level=get_pref_str(prefs, "log_level", defaults.log_level),
            log_file=get_pref_path(prefs, "log_file", defaults.log_file),
            log_console=get_pref_bool(prefs, "log_console", defaults.log_console),
            log_max_bytes=get_pref_int(prefs, "log_max_bytes", defaults.log_max_bytes),
            log_backup_count=get_pref_int(prefs, "log_backup_count", defaults.log_backup_count),
        )

        if args is not None:
            config = config._apply_args_override(args)

        if not config.api_key:
            config.api_key = os.environ.get(API_KEY_ENV, "")

        config._validate(defaults)
        return config

    def _apply_args_override(self, args: Any) -> "TrackerMapConfig":
        """Apply CLI argument overrides to config values."""
        values = asdict(self)

        arg_mappings = {
            "base_url": "base_url",
            "api_key": "api_key",
            "poll_interval": "poll_interval_s",
            "log_level": "log_level",
            "log_file": "log_file",
            "log_console": "log_console",
        }

        for arg_name, config_key in arg_mappings.items():
            if hasattr(args, arg_name):
                val = getattr(args, arg_name)
                if val is not None:
                    values[config_key] = val

        return TrackerMapConfig(**values)

    def _validate(self, defaults: "TrackerMapConfig") -> None:
        """Replace values that parsed but are out of range with their defaults."""
        for name in _POSITIVE_FIELDS:
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                fallback = getattr(defaults, name)
                logger.warning("%s must be positive, got %r; using %r", name, value, fallback)
                setattr(self, name, fallback)

        for name in _NON_NEGATIVE_FIELDS:
            value = getattr(self, name)
            if not (math.isfinite(value) and value >= 0):
                fallback = getattr(defaults, name)
                logger.warning("%s must not be negative, got %r; using %r", name, value, fallback)
                setattr(self, name, fallback)

        try:
            coerce_level(self.log_level)
        except ValueError:
            logger.warning("Unknown log level %r; using %r", self.log_level, defaults.log_level)
            self.log_level = defaults.log_level
        else:
            self.log_level = self.log_level.lower()

    @property
    def normalized_base_url(self) -> str:
        return self.base_url if self.base_url.endswith("/") else f"{self.base_url}/"

    def to_dict(self) -> dict[str, Any]:
        """Export config values as dictionary, with the API key masked."""
        values = asdict(self)
        if values["api_key"]:
            values["api_key"] = "***"
        return values


__all__ = ["API_KEY_ENV", "TrackerMapConfig"]
