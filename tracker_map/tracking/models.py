"""Tracker data model and wire-record decoding."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

# Lat/Lon are sent as integers in units of 1/2,000,000 degree.
FIXED_POINT_SCALE = 2_000_000

Coordinate = Tuple[float, float]


def decode_coordinate(raw: Any) -> float:
    """Convert a fixed-point wire coordinate into decimal degrees."""
    if raw is None or raw == "":
        return 0.0
    return float(raw) / FIXED_POINT_SCALE


def parse_timestamp(value: Any) -> Optional[dt.datetime]:
    """Parse an RFC3339 string or Unix seconds into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        if value <= 0:
            return None
        return dt.datetime.fromtimestamp(value, tz=dt.timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


def timestamp_advances(candidate: Optional[dt.datetime], stored: Optional[dt.datetime]) -> bool:
    """Return True when ``candidate`` is strictly newer than ``stored``.

    A missing timestamp never advances anything; any real timestamp
    advances a missing one.
    """
    if candidate is None:
        return False
    if stored is None:
        return True
    return candidate > stored


def format_timestamp(value: Optional[dt.datetime], fmt: str) -> str:
    """Render a timestamp in local time, or an empty string if absent."""
    if value is None:
        return ""
    return value.astimezone().strftime(fmt)


def _optional_number(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if number.is_integer() else number


@dataclass(slots=True, frozen=True)
class TrackerRecord:
    """One decoded entry from the snapshot or history endpoint."""

    id: str
    lat: float
    lon: float
    timestamp: Optional[dt.datetime]
    name: str = ""
    model: str = ""
    speed: Optional[float] = None
    heading: Optional[float] = None

    @classmethod
    def from_json(cls, payload: Mapping[str, Any], *, tracker_id: Optional[str] = None) -> "TrackerRecord":
        """Decode a server JSON object.

        History points carry no Id of their own, so ``tracker_id`` is used as
        a fallback.
        """
        raw_id = payload.get("Id", payload.get("TrackerId", tracker_id))
        if raw_id is None or str(raw_id) == "":
            raise ValueError("Tracker record has no Id")
        return cls(
            id=str(raw_id),
            name=str(payload.get("Name") or ""),
            model=str(payload.get("Model") or ""),
            lat=decode_coordinate(payload.get("Lat")),
            lon=decode_coordinate(payload.get("Lon")),
            timestamp=parse_timestamp(payload.get("Timestamp")),
            speed=_optional_number(payload.get("Speed")),
            heading=_optional_number(payload.get("Heading")),
        )

    @property
    def coordinate(self) -> Coordinate:
        return (self.lat, self.lon)


@dataclass(slots=True, eq=False)
class Tracker:
    """Canonical client-side state of one tracker."""

    id: str
    name: str = ""
    model: str = ""
    lat: float = 0.0
    lon: float = 0.0
    timestamp: Optional[dt.datetime] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    visible: bool = True
    marker: Any = field(default=None, repr=False)
    polyline: Any = field(default=None, repr=False)

    @classmethod
    def from_record(cls, record: TrackerRecord) -> "Tracker":
        return cls(
            id=record.id,
            name=record.name,
            model=record.model,
            lat=record.lat,
            lon=record.lon,
            timestamp=record.timestamp,
            speed=record.speed,
            heading=record.heading,
        )

    @property
    def coordinate(self) -> Coordinate:
        return (self.lat, self.lon)

    @property
    def has_location(self) -> bool:
        return self.lat != 0.0

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def apply(self, record: TrackerRecord) -> None:
        """Copy location fields from an accepted record."""
        self.timestamp = record.timestamp
        self.lat = record.lat
        self.lon = record.lon
        self.speed = record.speed
        self.heading = record.heading
        if record.name:
            self.name = record.name
        if record.model:
            self.model = record.model


__all__ = [
    "FIXED_POINT_SCALE",
    "Coordinate",
    "Tracker",
    "TrackerRecord",
    "decode_coordinate",
    "format_timestamp",
    "parse_timestamp",
    "timestamp_advances",
]
