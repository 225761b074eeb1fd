"""Capability interfaces for the map, the control panel and timers.

The registry, visibility controller, history loader and playback engine only
talk to the outside world through these protocols. ``LoggingMapSurface`` and
``LoggingControlPanel`` are headless implementations that record state and
log every call; the CLI runs on them.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence, runtime_checkable

from tracker_map.core.logging_utils import get_module_logger

from .models import Coordinate, Tracker


@dataclass(frozen=True, slots=True)
class PolylineStyle:
    color: str
    weight: int
    opacity: float


RECENT_TRACK_STYLE = PolylineStyle(color="#2563eb", weight=3, opacity=0.9)
ROUTE_STYLE = PolylineStyle(color="#6366f1", weight=4, opacity=0.6)


@runtime_checkable
class MapSurface(Protocol):
    """Rendering collaborator: markers, polylines and the viewport."""

    def create_marker(self, coordinate: Coordinate) -> Any: ...

    def move_marker(self, marker: Any, coordinate: Coordinate) -> None: ...

    def set_popup(self, marker: Any, text: str) -> None: ...

    def create_polyline(self, coordinates: Sequence[Coordinate], style: PolylineStyle) -> Any: ...

    def create_cursor(self, coordinate: Coordinate) -> Any: ...

    def attach(self, overlay: Any) -> None: ...

    def detach(self, overlay: Any) -> None: ...

    def fit_bounds(self, coordinates: Sequence[Coordinate], padding: float) -> None: ...

    def fly_to(self, coordinate: Coordinate, zoom: float) -> None: ...

    def set_view(self, coordinate: Coordinate, zoom: float) -> None: ...


@runtime_checkable
class ControlPanel(Protocol):
    """UI collaborator: playback controls, tracker list and notices."""

    def selected_speed(self) -> float: ...

    def selected_range(self) -> str: ...

    def set_progress(self, percent: int) -> None: ...

    def set_play_label(self, text: str) -> None: ...

    def set_point_info(self, text: str) -> None: ...

    def show_playback_panel(self, visible: bool, label: str = "") -> None: ...

    def panel_visible(self) -> bool: ...

    def set_visibility_checked(self, tracker_id: str, checked: bool) -> None: ...

    def render_tracker_list(self, trackers: Iterable[Tracker]) -> None: ...

    def update_tracker_card(self, tracker: Tracker) -> None: ...

    def set_connectivity(self, online: bool) -> None: ...

    def notify(self, message: str) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Source of cancellable one-shot timers."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Scheduler backed by the running asyncio loop's ``call_later``."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_s, callback)


# ---------------------------------------------------------------------------
# Headless implementations
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class Overlay:
    """A map object created by :class:`LoggingMapSurface`."""

    kind: str
    overlay_id: int
    coordinates: list[Coordinate]
    style: Optional[PolylineStyle] = None
    popup: str = ""
    attached: bool = False

    def __repr__(self) -> str:
        return f"<{self.kind}#{self.overlay_id} attached={self.attached}>"


class LoggingMapSurface:
    """MapSurface that keeps overlays in memory and logs each operation."""

    def __init__(self) -> None:
        self.logger = get_module_logger("MapSurface")
        self._ids = itertools.count(1)
        self.attached: set[int] = set()
        self.center: Optional[Coordinate] = None
        self.zoom: Optional[float] = None

    def _new(self, kind: str, coordinates: Sequence[Coordinate], style: Optional[PolylineStyle] = None) -> Overlay:
        overlay = Overlay(kind, next(self._ids), list(coordinates), style)
        self.logger.debug("Created %r (%d points)", overlay, len(overlay.coordinates))
        return overlay

    def create_marker(self, coordinate: Coordinate) -> Overlay:
        return self._new("marker", [coordinate])

    def move_marker(self, marker: Overlay, coordinate: Coordinate) -> None:
        marker.coordinates = [coordinate]
        self.logger.debug("Moved %r to %.6f, %.6f", marker, *coordinate)

    def set_popup(self, marker: Overlay, text: str) -> None:
        marker.popup = text

    def create_polyline(self, coordinates: Sequence[Coordinate], style: PolylineStyle) -> Overlay:
        return self._new("polyline", coordinates, style)

    def create_cursor(self, coordinate: Coordinate) -> Overlay:
        return self._new("cursor", [coordinate])

    def attach(self, overlay: Overlay) -> None:
        overlay.attached = True
        self.attached.add(overlay.overlay_id)

    def detach(self, overlay: Overlay) -> None:
        overlay.attached = False
        self.attached.discard(overlay.overlay_id)

    def fit_bounds(self, coordinates: Sequence[Coordinate], padding: float) -> None:
        if not coordinates:
            return
        lats = [c[0] for c in coordinates]
        lons = [c[1] for c in coordinates]
        self.center = ((min(lats) + max(lats)) / 2, (min(lons) + max(lons)) / 2)
        self.logger.info(
            "Fit view to [%.5f, %.5f]-[%.5f, %.5f] (pad %.2f)",
            min(lats), min(lons), max(lats), max(lons), padding,
        )

    def fly_to(self, coordinate: Coordinate, zoom: float) -> None:
        self.center, self.zoom = coordinate, zoom
        self.logger.info("Fly to %.6f, %.6f @ zoom %s", coordinate[0], coordinate[1], zoom)

    def set_view(self, coordinate: Coordinate, zoom: float) -> None:
        self.center, self.zoom = coordinate, zoom


@dataclass
class LoggingControlPanel:
    """ControlPanel that holds the selections in memory and logs output."""

    speed: float = 1.0
    history_range: str = "off"
    progress: int = 0
    play_label: str = "Play"
    point_info: str = ""
    panel_label: str = ""
    online: bool = True
    checked: dict[str, bool] = field(default_factory=dict)
    notices: list[str] = field(default_factory=list)
    _panel_visible: bool = False

    def __post_init__(self) -> None:
        self.logger = get_module_logger("ControlPanel")

    def selected_speed(self) -> float:
        return self.speed

    def selected_range(self) -> str:
        return self.history_range

    def set_progress(self, percent: int) -> None:
        self.progress = percent

    def set_play_label(self, text: str) -> None:
        self.play_label = text

    def set_point_info(self, text: str) -> None:
        self.point_info = text
        self.logger.info("%s", text)

    def show_playback_panel(self, visible: bool, label: str = "") -> None:
        self._panel_visible = visible
        if visible:
            self.panel_label = label
            self.logger.info("%s", label)

    def panel_visible(self) -> bool:
        return self._panel_visible

    def set_visibility_checked(self, tracker_id: str, checked: bool) -> None:
        self.checked[tracker_id] = checked

    def render_tracker_list(self, trackers: Iterable[Tracker]) -> None:
        for tracker in trackers:
            self.checked[tracker.id] = tracker.visible
            self.logger.info("Tracker %s (%s)", tracker.id, tracker.display_name)

    def update_tracker_card(self, tracker: Tracker) -> None:
        self.logger.debug("Tracker %s updated at %s", tracker.id, tracker.timestamp)

    def set_connectivity(self, online: bool) -> None:
        self.online = online

    def notify(self, message: str) -> None:
        self.notices.append(message)
        self.logger.warning("%s", message)


__all__ = [
    "ControlPanel",
    "LoggingControlPanel",
    "LoggingMapSurface",
    "LoopScheduler",
    "MapSurface",
    "Overlay",
    "PolylineStyle",
    "RECENT_TRACK_STYLE",
    "ROUTE_STYLE",
    "Scheduler",
    "TimerHandle",
]
