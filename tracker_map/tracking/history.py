"""Loading a tracker's historical route from the server."""

from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass, field
from typing import Callable, Optional

from tracker_map.api.client import TrackerApiClient
from tracker_map.api.errors import TrackerApiError
from tracker_map.core.logging_utils import get_module_logger

from .models import Coordinate, TrackerRecord
from .registry import TrackerRegistry
from .surface import RECENT_TRACK_STYLE, ROUTE_STYLE, MapSurface
from .visibility import VisibilityController

# History range selector values and their window lengths
HISTORY_RANGES: dict[str, dt.timedelta] = {
    "off": dt.timedelta(0),
    "15m": dt.timedelta(minutes=15),
    "1h": dt.timedelta(hours=1),
    "6h": dt.timedelta(hours=6),
    "24h": dt.timedelta(hours=24),
}

RECENT_TRACK_PADDING = 0.2
ROUTE_PADDING = 0.15
MIN_ROUTE_POINTS = 2


def range_to_window(selection: Optional[str]) -> dt.timedelta:
    """Map a range selector value to a window; unknown values mean "off"."""
    return HISTORY_RANGES.get((selection or "off").strip().lower(), dt.timedelta(0))


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class HistoryStatus(enum.Enum):
    LOADED = "loaded"
    INSUFFICIENT = "insufficient"


@dataclass(slots=True)
class HistoryResult:
    """Outcome of a windowed history load."""

    status: HistoryStatus
    tracker_id: str
    coordinates: list[Coordinate] = field(default_factory=list)
    points: list[TrackerRecord] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is HistoryStatus.LOADED


class HistoryLoader:
    """Fetches history for one tracker and draws it as that tracker's polyline."""

    def __init__(
        self,
        client: TrackerApiClient,
        registry: TrackerRegistry,
        visibility: VisibilityController,
        surface: MapSurface,
        *,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self.logger = get_module_logger("HistoryLoader")
        self._client = client
        self._registry = registry
        self._visibility = visibility
        self._surface = surface
        self._clock = clock

    async def fetch_recent(self, tracker_id: str, limit: int = 50) -> Optional[list[Coordinate]]:
        """Draw the last ``limit`` positions as a static track.

        Background path: fewer than two points and transport failures are
        both silent apart from logging. Returns the drawn coordinates, or
        None when nothing was drawn.
        """
        try:
            payload = await self._client.fetch_locations(tracker_id, limit=limit)
        except TrackerApiError as exc:
            self.logger.warning("Failed to render history for %s: %s", tracker_id, exc)
            return None

        points = self._decode(tracker_id, payload)
        if len(points) < MIN_ROUTE_POINTS:
            return None

        coordinates = [point.coordinate for point in points]
        if not self._draw(tracker_id, coordinates, recent=True):
            return None
        return coordinates

    async def fetch_window(
        self,
        tracker_id: str,
        duration: dt.timedelta,
        *,
        still_wanted: Optional[Callable[[], bool]] = None,
    ) -> HistoryResult:
        """Load the points recorded in the last ``duration`` for a replay.

        Raises TrackerApiError on transport failure so the caller can tell
        the user. Fewer than two points is reported as INSUFFICIENT and
        nothing is drawn. When ``still_wanted`` returns False once the
        response arrives, the route is returned but not drawn.
        """
        end = self._clock()
        start = end - duration
        payload = await self._client.fetch_locations(tracker_id, start=start, end=end)

        points = self._decode(tracker_id, payload)
        if len(points) < MIN_ROUTE_POINTS:
            self.logger.info(
                "Only %d point(s) for %s between %s and %s",
                len(points), tracker_id, start.isoformat(), end.isoformat(),
            )
            return HistoryResult(HistoryStatus.INSUFFICIENT, tracker_id, points=points)

        coordinates = [point.coordinate for point in points]
        if still_wanted is None or still_wanted():
            self._draw(tracker_id, coordinates, recent=False)
        self.logger.info("Loaded %d points for %s", len(points), tracker_id)
        return HistoryResult(HistoryStatus.LOADED, tracker_id, coordinates, points)

    # ------------------------------------------------------------------
    # Internal helpers

    def _decode(self, tracker_id: str, payload: list[dict]) -> list[TrackerRecord]:
        points: list[TrackerRecord] = []
        for item in payload:
            try:
                points.append(TrackerRecord.from_json(item, tracker_id=tracker_id))
            except ValueError as exc:
                self.logger.debug("Skipping malformed history point for %s: %s", tracker_id, exc)
        return points

    def _draw(self, tracker_id: str, coordinates: list[Coordinate], *, recent: bool) -> bool:
        tracker = self._registry.get(tracker_id)
        if tracker is None:
            self.logger.warning("History for unknown tracker %s not drawn", tracker_id)
            return False
        style = RECENT_TRACK_STYLE if recent else ROUTE_STYLE
        self._visibility.replace_polyline(tracker, coordinates, style)
        self._surface.fit_bounds(coordinates, RECENT_TRACK_PADDING if recent else ROUTE_PADDING)
        return True


__all__ = [
    "HISTORY_RANGES",
    "HistoryLoader",
    "HistoryResult",
    "HistoryStatus",
    "range_to_window",
]
