"""Unit tests for VisibilityController."""

from fakes import make_record
from tracker_map.tracking.surface import LoggingControlPanel, ROUTE_STYLE
from tracker_map.tracking.visibility import VisibilityController


def _add(registry, visibility, tracker_id, *, with_polyline=True):
    registry.upsert(make_record(tracker_id, "2024-01-01T00:00:00Z"))
    tracker = registry.get(tracker_id)
    if with_polyline:
        visibility.replace_polyline(tracker, [(55.0, 12.0), (55.1, 12.1)], ROUTE_STYLE)
    return tracker


class TestSetVisibility:

    def test_hide_detaches_marker_and_polyline(self, registry, visibility, panel):
        tracker = _add(registry, visibility, "T1")

        visibility.set_visibility(tracker, False)

        assert tracker.visible is False
        assert tracker.marker.attached is False
        assert tracker.polyline.attached is False
        assert panel.checked["T1"] is False

    def test_show_reattaches_both(self, registry, visibility, panel):
        tracker = _add(registry, visibility, "T1")
        visibility.set_visibility(tracker, False)

        visibility.set_visibility(tracker, True)

        assert tracker.marker.attached is True
        assert tracker.polyline.attached is True
        assert panel.checked["T1"] is True

    def test_idempotent(self, registry, visibility, surface):
        tracker = _add(registry, visibility, "T1")
        visibility.set_visibility(tracker, True)
        visibility.set_visibility(tracker, True)
        assert tracker.marker.overlay_id in surface.attached
        assert tracker.polyline.overlay_id in surface.attached

    def test_listeners_hear_only_real_changes(self, registry, visibility):
        tracker = _add(registry, visibility, "T1")
        seen = []
        visibility.add_listener(lambda t, visible: seen.append((t.id, visible)))

        visibility.set_visibility(tracker, True)
        visibility.set_visibility(tracker, False)
        visibility.set_visibility(tracker, False)
        visibility.on_user_toggle("T1", True)

        assert seen == [("T1", False), ("T1", True)]

    def test_tracker_without_polyline(self, registry, visibility):
        tracker = _add(registry, visibility, "T1", with_polyline=False)
        visibility.set_visibility(tracker, False)
        visibility.set_visibility(tracker, True)
        assert tracker.polyline is None
        assert tracker.marker.attached is True

    def test_set_all_visibility(self, registry, visibility, panel):
        _add(registry, visibility, "T1")
        _add(registry, visibility, "T2")

        visibility.set_all_visibility(False)

        assert all(not t.visible for t in registry.all())
        assert panel.checked == {"T1": False, "T2": False}

    def test_user_toggle_for_unknown_tracker_is_ignored(self, visibility, panel):
        visibility.on_user_toggle("nope", False)
        assert panel.checked == {}


class EchoingPanel(LoggingControlPanel):
    """Panel whose checkbox fires the change handler again when set from code."""

    controller: VisibilityController = None

    def set_visibility_checked(self, tracker_id, checked):
        super().set_visibility_checked(tracker_id, checked)
        # A toolkit echo carrying a stale value must not flip state back.
        self.controller.on_user_toggle(tracker_id, not checked)


class TestReentrantCheckbox:

    def test_programmatic_checkbox_update_does_not_reenter(self, registry, surface):
        panel = EchoingPanel()
        visibility = VisibilityController(registry, surface, panel)
        panel.controller = visibility
        tracker = _add(registry, visibility, "T1")

        visibility.on_user_toggle("T1", False)

        assert tracker.visible is False
        assert tracker.marker.attached is False
        assert panel.checked["T1"] is False

    def test_user_toggle_after_sync_is_honored(self, registry, surface):
        panel = EchoingPanel()
        visibility = VisibilityController(registry, surface, panel)
        panel.controller = visibility
        tracker = _add(registry, visibility, "T1")

        visibility.on_user_toggle("T1", False)
        visibility.on_user_toggle("T1", True)

        assert tracker.visible is True
        assert tracker.marker.attached is True


class TestPlaybackExclusivity:

    def test_hide_for_playback_skips_active_tracker(self, registry, visibility):
        active = _add(registry, visibility, "T1")
        other = _add(registry, visibility, "T2")
        bare = _add(registry, visibility, "T3", with_polyline=False)

        hidden = visibility.hide_for_playback("T1")

        assert hidden == {"T2"}
        assert active.polyline.attached is True
        assert other.polyline.attached is False
        assert bare.polyline is None

    def test_restore_only_reattaches_visible_trackers(self, registry, visibility):
        _add(registry, visibility, "T1")
        shown = _add(registry, visibility, "T2")
        hidden_by_user = _add(registry, visibility, "T3")

        hidden = visibility.hide_for_playback("T1")
        visibility.bind_playback_hidden(lambda: hidden)
        visibility.set_visibility(hidden_by_user, False)

        visibility.bind_playback_hidden(frozenset)
        visibility.restore_after_playback(hidden)

        assert shown.polyline.attached is True
        assert hidden_by_user.polyline.attached is False

    def test_show_during_playback_keeps_polyline_hidden(self, registry, visibility):
        _add(registry, visibility, "T1")
        other = _add(registry, visibility, "T2")
        visibility.set_visibility(other, False)

        hidden = visibility.hide_for_playback("T1")
        visibility.bind_playback_hidden(lambda: hidden)
        visibility.set_visibility(other, True)

        assert other.marker.attached is True
        assert other.polyline.attached is False

    def test_replace_polyline_while_hidden_by_playback(self, registry, visibility):
        _add(registry, visibility, "T1")
        other = _add(registry, visibility, "T2")
        hidden = visibility.hide_for_playback("T1")
        visibility.bind_playback_hidden(lambda: hidden)

        old = other.polyline
        visibility.replace_polyline(other, [(1.0, 1.0), (2.0, 2.0)], ROUTE_STYLE)

        assert old.attached is False
        assert other.polyline is not old
        assert other.polyline.attached is False
