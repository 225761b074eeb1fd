"""Per-tracker overlay visibility and the playback hide/restore pair."""

from __future__ import annotations

from typing import AbstractSet, Callable, Iterable, Sequence

from tracker_map.core.logging_utils import get_module_logger

from .models import Coordinate, Tracker
from .registry import TrackerRegistry
from .surface import ControlPanel, MapSurface, PolylineStyle

VisibilityListener = Callable[[Tracker, bool], None]


class VisibilityController:
    """Attaches and detaches marker/polyline overlays for each tracker.

    The "Show on map" checkbox of each tracker card is bound two ways: user
    changes arrive through :meth:`on_user_toggle`, and every visibility change
    is pushed back with ``ControlPanel.set_visibility_checked``. UI toolkits
    commonly re-fire the change handler when a checkbox is set from code, so
    toggles that arrive while the controller is pushing state are ignored.
    """

    def __init__(self, registry: TrackerRegistry, surface: MapSurface, panel: ControlPanel) -> None:
        self.logger = get_module_logger("VisibilityController")
        self._registry = registry
        self._surface = surface
        self._panel = panel
        self._syncing_control = False
        self._playback_hidden: Callable[[], AbstractSet[str]] = frozenset
        self._listeners: list[VisibilityListener] = []

    def add_listener(self, callback: VisibilityListener) -> None:
        """Call ``callback(tracker, visible)`` whenever a tracker is shown or hidden."""
        self._listeners.append(callback)

    def bind_playback_hidden(self, provider: Callable[[], AbstractSet[str]]) -> None:
        """Give the controller read access to the active session's hidden set."""
        self._playback_hidden = provider

    def is_hidden_by_playback(self, tracker_id: str) -> bool:
        return tracker_id in self._playback_hidden()

    # ------------------------------------------------------------------
    # Per-tracker visibility

    def on_user_toggle(self, tracker_id: str, checked: bool) -> None:
        if self._syncing_control:
            return
        tracker = self._registry.get(tracker_id)
        if tracker is None:
            self.logger.warning("Visibility toggle for unknown tracker %s", tracker_id)
            return
        self.set_visibility(tracker, checked)

    def set_visibility(self, tracker: Tracker, visible: bool) -> None:
        if tracker.visible != visible:
            tracker.visible = visible
            if visible:
                if tracker.marker is not None:
                    self._surface.attach(tracker.marker)
                if tracker.polyline is not None and not self.is_hidden_by_playback(tracker.id):
                    self._surface.attach(tracker.polyline)
            else:
                if tracker.marker is not None:
                    self._surface.detach(tracker.marker)
                if tracker.polyline is not None:
                    self._surface.detach(tracker.polyline)
            self.logger.debug("Tracker %s visible=%s", tracker.id, visible)
            for callback in list(self._listeners):
                callback(tracker, visible)

        self._sync_control(tracker)

    def set_all_visibility(self, visible: bool) -> None:
        for tracker in self._registry.all():
            self.set_visibility(tracker, visible)

    def replace_polyline(
        self,
        tracker: Tracker,
        coordinates: Sequence[Coordinate],
        style: PolylineStyle,
    ) -> None:
        """Swap the tracker's polyline for a new one in a single step."""
        if tracker.polyline is not None:
            self._surface.detach(tracker.polyline)
        tracker.polyline = self._surface.create_polyline(coordinates, style)
        if tracker.visible and not self.is_hidden_by_playback(tracker.id):
            self._surface.attach(tracker.polyline)

    # ------------------------------------------------------------------
    # Playback exclusivity

    def hide_for_playback(self, active_id: str) -> set[str]:
        """Detach every other tracker's polyline; returns the ids it hid."""
        hidden: set[str] = set()
        for tracker in self._registry.all():
            if tracker.id == active_id or tracker.polyline is None:
                continue
            if tracker.visible:
                self._surface.detach(tracker.polyline)
            hidden.add(tracker.id)
        if hidden:
            self.logger.debug("Hid %d polylines for playback of %s", len(hidden), active_id)
        return hidden

    def restore_after_playback(self, hidden_ids: Iterable[str]) -> None:
        """Re-attach polylines hidden by playback for trackers still visible."""
        for tracker_id in list(hidden_ids):
            tracker = self._registry.get(tracker_id)
            if tracker is None or tracker.polyline is None:
                continue
            if tracker.visible:
                self._surface.attach(tracker.polyline)

    # ------------------------------------------------------------------
    # Internal helpers

    def _sync_control(self, tracker: Tracker) -> None:
        self._syncing_control = True
        try:
            self._panel.set_visibility_checked(tracker.id, tracker.visible)
        finally:
            self._syncing_control = False


__all__ = ["VisibilityController", "VisibilityListener"]
