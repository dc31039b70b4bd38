"""GPS data types shared between the parser and the logging pipeline."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Optional

from ..constants import WGS84_WKID


@dataclass(frozen=True, slots=True)
class Position:
    """A point in a spatial reference; x is longitude, y is latitude for WGS84."""

    x: float
    y: float
    z: Optional[float] = None
    wkid: int = WGS84_WKID

    @property
    def longitude(self) -> float:
        return self.x

    @property
    def latitude(self) -> float:
        return self.y


@dataclass(frozen=True, slots=True)
class LocationEvent:
    """One decoded location update produced by the parser."""

    position: Position
    velocity_mps: Optional[float] = None
    course_deg: Optional[float] = None
    timestamp: Optional[dt.datetime] = None
    sentence_type: str = ""


__all__ = ["Position", "LocationEvent"]
