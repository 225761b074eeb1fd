"""Canonical per-tracker state, reconciled under a monotonic-timestamp rule."""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, Optional

from tracker_map.core.logging_utils import get_module_logger

from .models import Tracker, TrackerRecord, format_timestamp, timestamp_advances
from .surface import MapSurface

TrackerListener = Callable[[Tracker, bool], None]
"""Called with ``(tracker, created)`` after an insert or accepted update."""


class TrackerRegistry:
    """Owns every known tracker and its marker overlay.

    A tracker is created on its first sighting and never removed. A later
    record is applied only when its timestamp is strictly newer than the
    stored one, so responses that arrive out of order can never roll a
    tracker back.
    """

    def __init__(self, surface: MapSurface, *, timestamp_format: str = "%d.%m.%Y %H.%M.%S") -> None:
        self.logger = get_module_logger("TrackerRegistry")
        self._surface = surface
        self._timestamp_format = timestamp_format
        self._trackers: dict[str, Tracker] = {}
        self._listeners: list[TrackerListener] = []

    # ------------------------------------------------------------------
    # Accessors

    def get(self, tracker_id: str) -> Optional[Tracker]:
        return self._trackers.get(tracker_id)

    def all(self) -> list[Tracker]:
        return list(self._trackers.values())

    def __iter__(self) -> Iterator[Tracker]:
        return iter(list(self._trackers.values()))

    def __len__(self) -> int:
        return len(self._trackers)

    def __contains__(self, tracker_id: object) -> bool:
        return tracker_id in self._trackers

    def add_listener(self, listener: TrackerListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Reconciliation

    def upsert(self, record: TrackerRecord) -> bool:
        """Insert or reconcile one record.

        Returns True when the record created a tracker or was applied, False
        for a stale record (timestamp not newer than the stored one).
        """
        tracker = self._trackers.get(record.id)
        if tracker is None:
            tracker = Tracker.from_record(record)
            tracker.marker = self._surface.create_marker(tracker.coordinate)
            self._surface.attach(tracker.marker)
            self._trackers[tracker.id] = tracker
            self._refresh_marker(tracker)
            self.logger.info("Tracking %s (%s)", tracker.id, tracker.display_name)
            self._notify(tracker, True)
            return True

        if not timestamp_advances(record.timestamp, tracker.timestamp):
            self.logger.debug(
                "Ignoring stale update for %s (%s <= %s)",
                record.id,
                record.timestamp,
                tracker.timestamp,
            )
            return False

        tracker.apply(record)
        self._refresh_marker(tracker)
        self._notify(tracker, False)
        return True

    def upsert_many(self, records: Iterable[TrackerRecord]) -> int:
        """Apply a batch of records; returns how many were inserted or accepted."""
        return sum(1 for record in records if self.upsert(record))

    def popup_text(self, tracker: Tracker) -> str:
        return "\n".join(
            (
                f"Timestamp: {format_timestamp(tracker.timestamp, self._timestamp_format)}",
                f"ID: {tracker.id}",
                f"Name: {tracker.name}",
                f"Model: {tracker.model}",
            )
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _refresh_marker(self, tracker: Tracker) -> None:
        self._surface.move_marker(tracker.marker, tracker.coordinate)
        self._surface.set_popup(tracker.marker, self.popup_text(tracker))

    def _notify(self, tracker: Tracker, created: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(tracker, created)
            except Exception:
                self.logger.exception("Tracker listener failed for %s", tracker.id)


__all__ = ["TrackerListener", "TrackerRegistry"]
