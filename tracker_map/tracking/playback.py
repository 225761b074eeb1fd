"""Route playback: a single exclusive replay session and its tick loop.

State machine::

    STOPPED --begin_loading--> LOADING --start--> PLAYING <--toggle--> PAUSED
       ^                          |                  |                   |
       +------ cancel_loading ----+                  +-- reaches end --> +
       +------------------------- stop / replacement --------------------+

Reaching the last point pauses the session instead of ending it, so the
route can still be scrubbed and stepped. Each session carries a token; the
tick callback checks it on fire, so a timer belonging to a replaced session
never touches the new one.
"""

from __future__ import annotations

import enum
import itertools
import math
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Optional, Sequence

from tracker_map.core.logging_utils import get_module_logger

from .models import Coordinate, Tracker, TrackerRecord, format_timestamp
from .registry import TrackerRegistry
from .surface import ControlPanel, LoopScheduler, MapSurface, Scheduler, TimerHandle
from .visibility import VisibilityController

MIN_PLAYBACK_POINTS = 2
PLAY_LABEL = "Play"
PAUSE_LABEL = "Pause"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PlaybackState(enum.Enum):
    STOPPED = "stopped"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True, slots=True)
class PlaybackTiming:
    """Tick interval as a function of the speed multiplier (milliseconds)."""

    base_interval_ms: float = 60.0
    min_interval_ms: float = 16.0
    speed_factor_ms: float = 10.0

    def interval_ms(self, speed: float) -> float:
        return max(self.min_interval_ms, self.base_interval_ms - speed * self.speed_factor_ms)


@dataclass(slots=True, eq=False)
class PlaybackSession:
    token: int
    tracker_id: str
    coordinates: list[Coordinate]
    points: list[TrackerRecord]
    speed: float = 1.0
    index: int = 0
    playing: bool = True
    cursor: Any = None
    timer: Optional[TimerHandle] = None
    hidden_polylines: set[str] = field(default_factory=set)

    @property
    def last_index(self) -> int:
        return len(self.coordinates) - 1

    @property
    def at_end(self) -> bool:
        return self.index >= self.last_index

    @property
    def progress(self) -> int:
        return _round_half_up(self.index / self.last_index * 100)


def normalize_speed(value: Any) -> float:
    """Coerce a speed selection to a positive multiplier (default 1)."""
    try:
        speed = float(value)
    except (TypeError, ValueError):
        return 1.0
    if not math.isfinite(speed) or speed <= 0:
        return 1.0
    return speed


class PlaybackEngine:
    """Owns at most one playback session and drives its animation."""

    def __init__(
        self,
        registry: TrackerRegistry,
        visibility: VisibilityController,
        surface: MapSurface,
        panel: ControlPanel,
        *,
        scheduler: Optional[Scheduler] = None,
        timing: PlaybackTiming = PlaybackTiming(),
        timestamp_format: str = "%d.%m.%Y %H.%M.%S",
    ) -> None:
        self.logger = get_module_logger("PlaybackEngine")
        self._registry = registry
        self._visibility = visibility
        self._surface = surface
        self._panel = panel
        self._scheduler = scheduler or LoopScheduler()
        self.timing = timing
        self._timestamp_format = timestamp_format

        self._tokens = itertools.count(1)
        self._session: Optional[PlaybackSession] = None
        self._loading_token: Optional[int] = None
        self._loading_tracker: Optional[str] = None

        visibility.bind_playback_hidden(lambda: self.hidden_polylines)
        visibility.add_listener(self._on_visibility_changed)

    # ------------------------------------------------------------------
    # Introspection

    @property
    def state(self) -> PlaybackState:
        if self._loading_token is not None:
            return PlaybackState.LOADING
        if self._session is None:
            return PlaybackState.STOPPED
        return PlaybackState.PLAYING if self._session.playing else PlaybackState.PAUSED

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    @property
    def active_tracker_id(self) -> Optional[str]:
        if self._session is not None:
            return self._session.tracker_id
        return self._loading_tracker

    @property
    def hidden_polylines(self) -> FrozenSet[str]:
        if self._session is None:
            return frozenset()
        return frozenset(self._session.hidden_polylines)

    # ------------------------------------------------------------------
    # Loading

    def begin_loading(self, tracker_id: str) -> int:
        """Release any session and mark a history request as outstanding.

        Returns a token identifying this request; only the most recent
        token is current.
        """
        self.stop()
        token = next(self._tokens)
        self._loading_token = token
        self._loading_tracker = tracker_id
        self.logger.debug("Loading history for %s (load %d)", tracker_id, token)
        return token

    def is_current_load(self, token: int) -> bool:
        return self._loading_token == token

    def cancel_loading(self, token: int) -> None:
        if self._loading_token == token:
            self._loading_token = None
            self._loading_tracker = None

    # ------------------------------------------------------------------
    # Session control

    def start(
        self,
        tracker_id: str,
        coordinates: Sequence[Coordinate],
        raw_points: Sequence[TrackerRecord],
        *,
        label: Optional[str] = None,
    ) -> PlaybackSession:
        """Begin a replay of ``coordinates``, replacing any current session."""
        if len(coordinates) < MIN_PLAYBACK_POINTS:
            raise ValueError(
                f"Playback needs at least {MIN_PLAYBACK_POINTS} points, got {len(coordinates)}"
            )
        if len(raw_points) != len(coordinates):
            raise ValueError("coordinates and raw_points must be the same length")

        self.stop()

        session = PlaybackSession(
            token=next(self._tokens),
            tracker_id=tracker_id,
            coordinates=list(coordinates),
            points=list(raw_points),
            speed=normalize_speed(self._panel.selected_speed()),
        )

        tracker = self._registry.get(tracker_id)
        session.cursor = self._surface.create_cursor(session.coordinates[0])
        if tracker is None or tracker.visible:
            self._surface.attach(session.cursor)

        self._session = session
        if label is None:
            label = f"Route playback – {tracker.display_name if tracker else tracker_id}"
        self._panel.show_playback_panel(True, label)
        self._panel.set_play_label(PAUSE_LABEL)
        self._render(session)

        session.hidden_polylines = self._visibility.hide_for_playback(tracker_id)
        self.logger.info(
            "Playing %d points for %s at %sx", len(session.coordinates), tracker_id, session.speed
        )
        self._schedule(session)
        return session

    def stop(self) -> None:
        """Tear down the session (if any). Safe to call repeatedly."""
        self._loading_token = None
        self._loading_tracker = None

        session, self._session = self._session, None
        if session is not None:
            self._cancel_timer(session)
            if session.cursor is not None:
                self._surface.detach(session.cursor)
                session.cursor = None
            hidden, session.hidden_polylines = session.hidden_polylines, set()
            self._visibility.restore_after_playback(hidden)
            self.logger.info("Stopped playback for %s", session.tracker_id)

        self._panel.show_playback_panel(False)

    def toggle_play_pause(self) -> None:
        session = self._session
        if session is None:
            return
        session.playing = not session.playing
        self._panel.set_play_label(PAUSE_LABEL if session.playing else PLAY_LABEL)
        if session.playing:
            self._schedule(session)
        else:
            self._cancel_timer(session)

    def set_speed(self, value: Any) -> float:
        speed = normalize_speed(value)
        if self._session is not None:
            self._session.speed = speed
        return speed

    def scrub(self, percent: float) -> None:
        """Jump to ``percent`` (0-100) of the route without changing Playing."""
        session = self._session
        if session is None:
            return
        try:
            fraction = float(percent) / 100.0
        except (TypeError, ValueError):
            return
        if not math.isfinite(fraction):
            return
        self._move_to(session, _round_half_up(fraction * session.last_index))

    def step(self, direction: int) -> None:
        """Pause, then move one point forward (+1) or back (-1)."""
        session = self._session
        if session is None:
            return
        if session.playing:
            session.playing = False
            self._cancel_timer(session)
            self._panel.set_play_label(PLAY_LABEL)
        delta = (direction > 0) - (direction < 0)
        self._move_to(session, session.index + delta)

    def step_forward(self) -> None:
        self.step(1)

    def step_back(self) -> None:
        self.step(-1)

    def point_info(self, session: PlaybackSession) -> str:
        point = session.points[session.index]
        text = (
            f"Point {session.index + 1}/{len(session.coordinates)} • "
            f"{format_timestamp(point.timestamp, self._timestamp_format)}"
        )
        if point.speed is not None:
            text += f" • speed: {point.speed}"
        if point.heading is not None:
            text += f" • heading: {point.heading}"
        return text

    # ------------------------------------------------------------------
    # Tick loop

    def _schedule(self, session: PlaybackSession) -> None:
        self._cancel_timer(session)
        if not session.playing:
            return
        delay_s = self.timing.interval_ms(session.speed) / 1000.0
        token = session.token
        session.timer = self._scheduler.call_later(delay_s, lambda: self._tick(token))

    def _tick(self, token: int) -> None:
        session = self._session
        if session is None or session.token != token:
            self.logger.debug("Dropping tick from replaced session %d", token)
            return
        session.timer = None
        if not session.playing:
            return
        if session.at_end:
            self._finish(session)
            return

        self._move_to(session, session.index + 1)
        if session.at_end:
            self._finish(session)
        else:
            self._schedule(session)

    def _finish(self, session: PlaybackSession) -> None:
        session.playing = False
        self._panel.set_play_label(PLAY_LABEL)
        self.logger.debug("Playback of %s reached the last point", session.tracker_id)

    def _on_visibility_changed(self, tracker: Tracker, visible: bool) -> None:
        session = self._session
        if session is None or session.cursor is None or tracker.id != session.tracker_id:
            return
        if visible:
            self._surface.attach(session.cursor)
        else:
            self._surface.detach(session.cursor)

    def _cancel_timer(self, session: PlaybackSession) -> None:
        if session.timer is not None:
            session.timer.cancel()
            session.timer = None

    def _move_to(self, session: PlaybackSession, index: int) -> None:
        session.index = max(0, min(session.last_index, index))
        if session.cursor is not None:
            self._surface.move_marker(session.cursor, session.coordinates[session.index])
        self._render(session)

    def _render(self, session: PlaybackSession) -> None:
        self._panel.set_progress(session.progress)
        self._panel.set_point_info(self.point_info(session))


__all__ = [
    "PlaybackEngine",
    "PlaybackSession",
    "PlaybackState",
    "PlaybackTiming",
    "normalize_speed",
]
