"""Unit tests for HistoryLoader."""

import datetime as dt

import pytest

from fakes import make_record, wire_point
from tracker_map.api.errors import TransportError
from tracker_map.tracking.history import (
    HistoryLoader,
    HistoryStatus,
    range_to_window,
)
from tracker_map.tracking.surface import RECENT_TRACK_STYLE, ROUTE_STYLE

NOW = dt.datetime(2024, 1, 1, 12, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def loader(fake_client, registry, visibility, surface):
    registry.upsert(make_record("T1", "2024-01-01T11:59:00Z"))
    return HistoryLoader(fake_client, registry, visibility, surface, clock=lambda: NOW)


def _points(count):
    return [
        wire_point(55.0 + i * 0.01, 12.0 + i * 0.01, f"2024-01-01T11:{i:02d}:00Z", speed=i)
        for i in range(count)
    ]


@pytest.mark.parametrize(
    "selection, expected",
    [
        ("off", dt.timedelta(0)),
        ("15m", dt.timedelta(minutes=15)),
        ("1h", dt.timedelta(hours=1)),
        ("6h", dt.timedelta(hours=6)),
        ("24h", dt.timedelta(hours=24)),
        ("bogus", dt.timedelta(0)),
        (None, dt.timedelta(0)),
    ],
)
def test_range_to_window(selection, expected):
    assert range_to_window(selection) == expected


class TestFetchRecent:

    @pytest.mark.asyncio
    async def test_draws_recent_track(self, loader, fake_client, registry, surface):
        fake_client.locations["T1"] = _points(3)

        coords = await loader.fetch_recent("T1", limit=50)

        tracker = registry.get("T1")
        assert len(coords) == 3
        assert fake_client.location_calls == [{"tracker_id": "T1", "limit": 50}]
        assert tracker.polyline.attached is True
        assert tracker.polyline.style == RECENT_TRACK_STYLE
        assert tracker.polyline.coordinates == coords
        assert surface.center is not None

    @pytest.mark.asyncio
    async def test_single_point_draws_nothing(self, loader, fake_client, registry):
        fake_client.locations["T1"] = _points(1)
        assert await loader.fetch_recent("T1") is None
        assert registry.get("T1").polyline is None

    @pytest.mark.asyncio
    async def test_transport_failure_is_swallowed(self, loader, fake_client, registry):
        fake_client.locations["T1"] = TransportError("boom", status=500)
        assert await loader.fetch_recent("T1") is None
        assert registry.get("T1").polyline is None

    @pytest.mark.asyncio
    async def test_unknown_tracker_not_drawn(self, loader, fake_client):
        fake_client.locations["ghost"] = _points(3)
        assert await loader.fetch_recent("ghost") is None


class TestFetchWindow:

    @pytest.mark.asyncio
    async def test_loads_and_draws_route(self, loader, fake_client, registry):
        fake_client.locations["T1"] = _points(4)

        result = await loader.fetch_window("T1", dt.timedelta(hours=1))

        assert result.ok
        assert result.status is HistoryStatus.LOADED
        assert len(result.coordinates) == len(result.points) == 4
        assert result.points[0].speed == 0
        assert result.points[0].id == "T1"
        call = fake_client.location_calls[0]
        assert call["start"] == NOW - dt.timedelta(hours=1)
        assert call["end"] == NOW
        polyline = registry.get("T1").polyline
        assert polyline.style == ROUTE_STYLE
        assert polyline.attached is True

    @pytest.mark.asyncio
    async def test_replaces_previous_polyline(self, loader, fake_client, registry):
        fake_client.locations["T1"] = _points(3)
        await loader.fetch_recent("T1")
        old = registry.get("T1").polyline

        await loader.fetch_window("T1", dt.timedelta(minutes=15))

        assert old.attached is False
        assert registry.get("T1").polyline is not old

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 1])
    async def test_insufficient_history(self, loader, fake_client, registry, count):
        fake_client.locations["T1"] = _points(count)

        result = await loader.fetch_window("T1", dt.timedelta(hours=1))

        assert result.status is HistoryStatus.INSUFFICIENT
        assert not result.ok
        assert result.coordinates == []
        assert registry.get("T1").polyline is None

    @pytest.mark.asyncio
    async def test_transport_failure_propagates(self, loader, fake_client):
        fake_client.locations["T1"] = TransportError("boom", status=502)
        with pytest.raises(TransportError):
            await loader.fetch_window("T1", dt.timedelta(hours=1))

    @pytest.mark.asyncio
    async def test_unwanted_result_is_not_drawn(self, loader, fake_client, registry):
        fake_client.locations["T1"] = _points(3)

        result = await loader.fetch_window(
            "T1", dt.timedelta(hours=1), still_wanted=lambda: False
        )

        assert result.ok
        assert registry.get("T1").polyline is None

    @pytest.mark.asyncio
    async def test_malformed_points_are_skipped(self, loader, fake_client):
        points = _points(3)
        points.insert(1, {"Id": "", "Lat": 1, "Lon": 1})
        fake_client.locations["T1"] = points

        result = await loader.fetch_window("T1", dt.timedelta(hours=1))

        assert len(result.points) == 3
