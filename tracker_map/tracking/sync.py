"""Periodic poll of the live snapshot into the tracker registry."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from tracker_map.api.client import TrackerApiClient
from tracker_map.api.errors import TrackerApiError
from tracker_map.core.asyncio_utils import cancel_task, create_logged_task
from tracker_map.core.logging_utils import get_module_logger

from .models import TrackerRecord
from .registry import TrackerRegistry

ConnectivityCallback = Callable[[bool], None]


class SyncScheduler:
    """Fixed-cadence snapshot poller.

    The loop fires every ``interval_s`` seconds no matter how earlier polls
    went. Polls are single-flight: a tick that fires while the previous
    poll is still waiting on the network is skipped, so two registry passes
    never interleave.
    """

    def __init__(
        self,
        client: TrackerApiClient,
        registry: TrackerRegistry,
        *,
        interval_s: float = 10.0,
        degraded_after: int = 3,
        on_connectivity_change: Optional[ConnectivityCallback] = None,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.logger = get_module_logger("SyncScheduler")
        self._client = client
        self._registry = registry
        self.interval_s = interval_s
        self.degraded_after = max(1, degraded_after)
        self.on_connectivity_change = on_connectivity_change

        self._loop_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self.consecutive_failures = 0
        self.skipped_ticks = 0
        self.online = True

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def poll_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        if self.is_running:
            self.logger.debug("Sync loop already running")
            return
        self._loop_task = create_logged_task(
            self._run(), logger=self.logger, context="tracker-sync-loop"
        )
        self.logger.info("Polling trackers every %.1fs", self.interval_s)

    async def stop(self) -> None:
        loop_task, self._loop_task = self._loop_task, None
        inflight, self._inflight = self._inflight, None
        await cancel_task(loop_task)
        await cancel_task(inflight)
        self.logger.debug("Sync loop stopped")

    # ------------------------------------------------------------------
    # Polling

    async def poll_once(self) -> int:
        """Fetch one snapshot and reconcile it. Transport errors propagate.

        Returns the number of records inserted or accepted.
        """
        payload = await self._client.fetch_trackers()
        records: list[TrackerRecord] = []
        for item in payload:
            try:
                records.append(TrackerRecord.from_json(item))
            except ValueError as exc:
                self.logger.debug("Skipping malformed tracker record: %s", exc)
        return self._registry.upsert_many(records)

    async def _tick(self) -> None:
        try:
            accepted = await self.poll_once()
        except TrackerApiError as exc:
            self._record_failure(exc)
            return
        self._record_success()
        if accepted:
            self.logger.debug("Snapshot applied %d update(s)", accepted)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self.interval_s
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            now = loop.time()
            next_at += self.interval_s
            if next_at <= now:
                # Fell behind (suspended host); resume the cadence from now.
                next_at = now + self.interval_s

            if self.poll_in_flight:
                self.skipped_ticks += 1
                self.logger.debug("Previous poll still in flight, skipping tick")
                continue

            self._inflight = create_logged_task(
                self._tick(), logger=self.logger, context="tracker-sync-poll"
            )

    # ------------------------------------------------------------------
    # Connectivity bookkeeping

    def _record_failure(self, exc: Exception) -> None:
        self.consecutive_failures += 1
        self.logger.warning(
            "Tracker poll failed (%d in a row): %s", self.consecutive_failures, exc
        )
        if self.online and self.consecutive_failures >= self.degraded_after:
            self.online = False
            self.logger.warning(
                "Live updates unavailable after %d failed polls", self.consecutive_failures
            )
            self._emit_connectivity(False)

    def _record_success(self) -> None:
        if not self.online:
            self.logger.info(
                "Live updates restored after %d failed polls", self.consecutive_failures
            )
            self.online = True
            self._emit_connectivity(True)
        self.consecutive_failures = 0

    def _emit_connectivity(self, online: bool) -> None:
        if self.on_connectivity_change is None:
            return
        try:
            self.on_connectivity_change(online)
        except Exception:
            self.logger.exception("Connectivity callback failed")


__all__ = ["SyncScheduler"]
