"""Application controller wiring the tracking components together."""

from __future__ import annotations

import asyncio
import datetime as dt
from typing import Optional

from tracker_map.api.client import TrackerApiClient
from tracker_map.api.errors import AuthorizationError, MissingCredentialError, TrackerApiError
from tracker_map.config import TrackerMapConfig
from tracker_map.core.asyncio_utils import cancel_task, create_logged_task
from tracker_map.core.logging_utils import get_module_logger
from tracker_map.tracking.history import HistoryLoader, range_to_window
from tracker_map.tracking.models import Tracker
from tracker_map.tracking.playback import PlaybackEngine, PlaybackTiming
from tracker_map.tracking.registry import TrackerRegistry
from tracker_map.tracking.surface import ControlPanel, MapSurface, Scheduler
from tracker_map.tracking.sync import SyncScheduler
from tracker_map.tracking.visibility import VisibilityController

MSG_MISSING_KEY = "Invalid URL. URL must specify an API KEY"
MSG_INVALID_KEY = "API key is invalid"
MSG_KEY_CHECK_FAILED = "Failed to validate API key"
MSG_NO_LOCATION = "There is no available location data for selected tracker"
MSG_NOT_ENOUGH_HISTORY = "Not enough history data to play route"
MSG_HISTORY_FAILED = "Failed to load history"
MSG_LOAD_FAILED = "Failed to load trackers"

STEP_KEYS = {"ArrowRight": 1, "ArrowLeft": -1}


class TrackerMapApp:
    """Builds every component once and implements the user-facing actions."""

    def __init__(
        self,
        config: TrackerMapConfig,
        surface: MapSurface,
        panel: ControlPanel,
        *,
        client: Optional[TrackerApiClient] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.logger = get_module_logger("TrackerMapApp")
        self.config = config
        self.surface = surface
        self.panel = panel
        self.client = client or TrackerApiClient(
            config.normalized_base_url,
            config.api_key,
            timeout_s=config.request_timeout_s,
        )

        self.registry = TrackerRegistry(surface, timestamp_format=config.timestamp_format)
        self.visibility = VisibilityController(self.registry, surface, panel)
        self.history = HistoryLoader(self.client, self.registry, self.visibility, surface)
        self.sync = SyncScheduler(
            self.client,
            self.registry,
            interval_s=config.poll_interval_s,
            degraded_after=config.degraded_after,
            on_connectivity_change=panel.set_connectivity,
        )
        self.playback = PlaybackEngine(
            self.registry,
            self.visibility,
            surface,
            panel,
            scheduler=scheduler,
            timing=PlaybackTiming(
                base_interval_ms=config.playback_base_interval_ms,
                min_interval_ms=config.playback_min_interval_ms,
                speed_factor_ms=config.playback_speed_factor_ms,
            ),
            timestamp_format=config.timestamp_format,
        )
        self.registry.add_listener(self._on_tracker_changed)
        self._initial_load_done = False
        self._recent_loads: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Startup / shutdown

    async def validate_api_key(self) -> bool:
        if not self.client.has_credential:
            self.panel.notify(MSG_MISSING_KEY)
            return False
        try:
            await self.client.whoami()
        except AuthorizationError:
            self.logger.error("API key rejected by server")
            self.panel.notify(MSG_INVALID_KEY)
            return False
        except MissingCredentialError:
            self.panel.notify(MSG_MISSING_KEY)
            return False
        except TrackerApiError as exc:
            self.logger.error("API key check failed: %s", exc)
            self.panel.notify(MSG_KEY_CHECK_FAILED)
            return False
        return True

    async def initialize(self) -> bool:
        """Validate the credential, load the first snapshot and start polling.

        Returns False (with nothing loaded) when the credential is missing
        or rejected or the first snapshot cannot be fetched.
        """
        if not await self.validate_api_key():
            return False

        self.surface.set_view((self.config.center_lat, self.config.center_lon), self.config.zoom)
        try:
            await self.sync.poll_once()
        except TrackerApiError as exc:
            self.logger.error("Initial tracker load failed: %s", exc)
            self.panel.notify(MSG_LOAD_FAILED)
            return False

        self._initial_load_done = True
        self.panel.render_tracker_list(self.registry.all())
        self.logger.info("Loaded %d tracker(s)", len(self.registry))

        # Live polling must not wait on the history endpoint.
        self.sync.start()
        await self.load_recent_tracks()
        return True

    async def load_recent_tracks(self) -> None:
        """Draw every located tracker's recent track, all requests in parallel."""
        limit = self.config.recent_track_limit
        if limit <= 0:
            return
        tasks = [
            create_logged_task(
                self.history.fetch_recent(tracker.id, limit),
                logger=self.logger,
                context=f"recent-track-{tracker.id}",
                pending=self._recent_loads,
            )
            for tracker in self.registry.all()
            if tracker.has_location
        ]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._recent_loads):
            await cancel_task(task)
        await self.sync.stop()
        self.playback.stop()
        await self.client.close()
        self.logger.info("Shut down")

    # ------------------------------------------------------------------
    # User actions

    async def go_to_tracker(self, tracker_id: str) -> None:
        tracker = self.registry.get(tracker_id)
        if tracker is None:
            self.logger.warning("Go to unknown tracker %s", tracker_id)
            return
        if not tracker.has_location:
            self.panel.notify(MSG_NO_LOCATION)
            return

        window = range_to_window(self.panel.selected_range())
        if window <= dt.timedelta(0):
            self.playback.stop()
            self.surface.fly_to(tracker.coordinate, self.config.focus_zoom)
            return
        await self.replay_history(tracker_id, window)

    async def replay_history(self, tracker_id: str, window: dt.timedelta) -> bool:
        """Load ``window`` of history and start playing it.

        Returns True when a session was started. A load overtaken by a newer
        request (or by stop) is dropped without touching the session.
        """
        token = self.playback.begin_loading(tracker_id)
        try:
            result = await self.history.fetch_window(
                tracker_id, window, still_wanted=lambda: self.playback.is_current_load(token)
            )
        except TrackerApiError as exc:
            self.logger.warning("Failed to load history for %s: %s", tracker_id, exc)
            if self.playback.is_current_load(token):
                self.playback.cancel_loading(token)
                self.panel.notify(MSG_HISTORY_FAILED)
            return False

        if not self.playback.is_current_load(token):
            self.logger.debug("Discarding superseded history load for %s", tracker_id)
            return False

        if not result.ok:
            self.playback.cancel_loading(token)
            self.panel.notify(MSG_NOT_ENOUGH_HISTORY)
            return False

        self.playback.start(tracker_id, result.coordinates, result.points)
        return True

    def handle_key(self, key: str) -> None:
        if not self.panel.panel_visible():
            return
        direction = STEP_KEYS.get(key)
        if direction is not None:
            self.playback.step(direction)

    def on_visibility_toggle(self, tracker_id: str, checked: bool) -> None:
        self.visibility.on_user_toggle(tracker_id, checked)

    def set_all_visibility(self, visible: bool) -> None:
        self.visibility.set_all_visibility(visible)

    # ------------------------------------------------------------------
    # Registry events

    def _on_tracker_changed(self, tracker: Tracker, created: bool) -> None:
        if not self._initial_load_done:
            return
        if created:
            self.panel.render_tracker_list(self.registry.all())
        else:
            self.panel.update_tracker_card(tracker)


__all__ = ["TrackerMapApp"]
