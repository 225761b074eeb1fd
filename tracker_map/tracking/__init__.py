"""Tracker state synchronization and route playback."""

from .history import HISTORY_RANGES, HistoryLoader, HistoryResult, HistoryStatus, range_to_window
from .models import Coordinate, Tracker, TrackerRecord
from .playback import PlaybackEngine, PlaybackSession, PlaybackState, PlaybackTiming
from .registry import TrackerRegistry
from .surface import (
    ControlPanel,
    LoggingControlPanel,
    LoggingMapSurface,
    LoopScheduler,
    MapSurface,
    Scheduler,
)
from .sync import SyncScheduler
from .visibility import VisibilityController

__all__ = [
    "Coordinate",
    "ControlPanel",
    "HISTORY_RANGES",
    "HistoryLoader",
    "HistoryResult",
    "HistoryStatus",
    "LoggingControlPanel",
    "LoggingMapSurface",
    "LoopScheduler",
    "MapSurface",
    "PlaybackEngine",
    "PlaybackSession",
    "PlaybackState",
    "PlaybackTiming",
    "Scheduler",
    "SyncScheduler",
    "Tracker",
    "TrackerRecord",
    "TrackerRegistry",
    "VisibilityController",
    "range_to_window",
]
