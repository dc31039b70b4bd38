"""Persisted track records."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, List, Optional

from ..constants import TRACK_RECORD_FIELDS, WGS84_WKID
from ..parsers.nmea_types import LocationEvent


@dataclass(frozen=True, slots=True)
class LoggedRecord:
    """Snapshot of the tracked position at the moment it was drained."""

    track_id: str
    recorded_at: dt.datetime
    latitude: float
    longitude: float
    altitude_m: Optional[float] = None
    wkid: int = WGS84_WKID
    speed_mps: Optional[float] = None
    heading_deg: Optional[float] = None
    fix_time: Optional[dt.datetime] = None
    sentence_type: str = ""

    @classmethod
    def from_event(
        cls,
        event: LocationEvent,
        track_id: str,
        recorded_at: Optional[dt.datetime] = None,
    ) -> "LoggedRecord":
        position = event.position
        return cls(
            track_id=track_id,
            recorded_at=recorded_at or dt.datetime.now(dt.timezone.utc),
            latitude=position.latitude,
            longitude=position.longitude,
            altitude_m=position.z,
            wkid=position.wkid,
            speed_mps=event.velocity_mps,
            heading_deg=event.course_deg,
            fix_time=event.timestamp,
            sentence_type=event.sentence_type,
        )

    def as_row(self) -> List[Any]:
        """Values in TRACK_RECORD_FIELDS order, timestamps as ISO strings."""
        values = {
            "track_id": self.track_id,
            "recorded_at": self.recorded_at.isoformat(),
            "fix_time": self.fix_time.isoformat() if self.fix_time else None,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude_m": self.altitude_m,
            "wkid": self.wkid,
            "speed_mps": self.speed_mps,
            "heading_deg": self.heading_deg,
            "sentence_type": self.sentence_type,
        }
        return [values[name] for name in TRACK_RECORD_FIELDS]


__all__ = ["LoggedRecord"]
