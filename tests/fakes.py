"""Test doubles and record builders shared by the unit tests."""

from __future__ import annotations

from typing import Any, Callable, Optional

from tracker_map.tracking.models import TrackerRecord, parse_timestamp


# =============================================================================
# Test doubles
# =============================================================================

class FakeTimer:
    """Timer handle returned by FakeScheduler."""

    def __init__(self, delay_s: float, callback: Callable[[], None]) -> None:
        self.delay_s = delay_s
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler whose timers only fire when the test says so."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay_s, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire(self, timer: FakeTimer) -> None:
        """Fire a specific timer, even a cancelled one (as a racing callback would)."""
        timer.fired = True
        timer.callback()

    def fire_next(self) -> bool:
        pending = self.pending
        if not pending:
            return False
        self.fire(pending[0])
        return True

    def run_until_idle(self, limit: int = 10_000) -> int:
        fired = 0
        while fired < limit and self.fire_next():
            fired += 1
        return fired


class FakeTrackerClient:
    """In-memory stand-in for TrackerApiClient.

    ``snapshots`` is consumed one entry per fetch_trackers() call; an entry
    that is an exception instance is raised instead of returned.
    """

    def __init__(self, api_key: str = "secret") -> None:
        self.api_key = api_key
        self.snapshots: list[Any] = []
        self.locations: dict[str, Any] = {}
        self.whoami_error: Optional[Exception] = None
        self.location_calls: list[dict[str, Any]] = []
        self.snapshot_calls = 0
        self.closed = False

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    async def whoami(self) -> Any:
        if self.whoami_error is not None:
            raise self.whoami_error
        return {"name": "tester"}

    async def fetch_trackers(self) -> list[dict[str, Any]]:
        self.snapshot_calls += 1
        entry = self.snapshots.pop(0) if self.snapshots else []
        if isinstance(entry, Exception):
            raise entry
        return entry

    async def fetch_locations(self, tracker_id: str, **kwargs: Any) -> list[dict[str, Any]]:
        self.location_calls.append({"tracker_id": tracker_id, **kwargs})
        entry = self.locations.get(tracker_id, [])
        if isinstance(entry, Exception):
            raise entry
        return entry

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Helpers
# =============================================================================

def wire_point(
    lat_deg: float,
    lon_deg: float,
    timestamp: str,
    *,
    tracker_id: Optional[str] = None,
    speed: Any = None,
    heading: Any = None,
) -> dict[str, Any]:
    """Build a server JSON object with fixed-point coordinates."""
    payload: dict[str, Any] = {
        "Lat": round(lat_deg * 2_000_000),
        "Lon": round(lon_deg * 2_000_000),
        "Timestamp": timestamp,
        "Speed": speed,
        "Heading": heading,
    }
    if tracker_id is not None:
        payload.update({"Id": tracker_id, "Name": f"Tracker {tracker_id}", "Model": "GT06"})
    return payload


def make_record(
    tracker_id: str,
    timestamp: Optional[str],
    lat: float = 55.0,
    lon: float = 12.0,
    **kwargs: Any,
) -> TrackerRecord:
    return TrackerRecord(
        id=tracker_id,
        lat=lat,
        lon=lon,
        timestamp=parse_timestamp(timestamp),
        name=kwargs.pop("name", f"Tracker {tracker_id}"),
        model=kwargs.pop("model", "GT06"),
        **kwargs,
    )


def make_route(count: int, *, tracker_id: str = "T1") -> tuple[list[tuple[float, float]], list[TrackerRecord]]:
    records = [
        make_record(
            tracker_id,
            f"2024-01-01T00:{i:02d}:00Z",
            lat=55.0 + i * 0.001,
            lon=12.0 + i * 0.001,
            speed=10 + i if i % 2 == 0 else None,
        )
        for i in range(count)
    ]
    return [r.coordinate for r in records], records


