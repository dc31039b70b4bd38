"""NMEA sentence decoding for location updates.

Only the sentences that carry position or motion are decoded: RMC, GGA and
GLL produce location events when they report a valid fix, VTG updates the
speed and course carried into later events. Everything else is ignored.
"""

from __future__ import annotations

import datetime as dt
from typing import Callable, List, NamedTuple, Optional

from ...core.logging_utils import get_module_logger
from ..constants import KMH_PER_KNOT, MPS_PER_KNOT
from .nmea_types import LocationEvent, Position

logger = get_module_logger(__name__)

LocationListener = Callable[[LocationEvent], None]


class _Fix(NamedTuple):
    """Position fields decoded from one sentence."""

    latitude: Optional[float]
    longitude: Optional[float]
    timestamp: Optional[dt.datetime]
    valid: bool


_NO_FIX = _Fix(None, None, None, False)


# ----------------------------------------------------------------------
# Field decoders; each returns None for empty or malformed fields

def _number(value: str, cast=float):
    if not value:
        return None
    try:
        return cast(value)
    except ValueError:
        return None


def _coordinate(value: str, hemisphere: str, degree_digits: int) -> Optional[float]:
    """``DDMM.mmmm`` (lat, 2 degree digits) or ``DDDMM.mmmm`` (lon, 3) to signed degrees."""
    if len(value) < degree_digits or not hemisphere:
        return None
    degrees = _number(value[:degree_digits], int)
    minutes = _number(value[degree_digits:])
    if degrees is None or minutes is None:
        return None
    decimal = degrees + minutes / 60.0
    return -decimal if hemisphere.upper() in ("S", "W") else decimal


def _utc_time(value: str) -> Optional[dt.time]:
    """``HHMMSS`` with optional fractional seconds."""
    whole, _, fraction = value.strip().partition(".")
    if not whole:
        return None
    whole = whole.rjust(6, "0")
    try:
        return dt.time(
            int(whole[0:2]),
            int(whole[2:4]),
            int(whole[4:6]),
            int(fraction[:6].ljust(6, "0") or 0),
            tzinfo=dt.timezone.utc,
        )
    except ValueError:
        return None


def _utc_date(value: str) -> Optional[dt.date]:
    """``DDMMYY``; years are taken as 20YY."""
    if len(value) != 6:
        return None
    try:
        return dt.date(2000 + int(value[4:6]), int(value[2:4]), int(value[0:2]))
    except ValueError:
        return None


def nmea_checksum(payload: str) -> int:
    """XOR of all characters between '$' and '*'."""
    checksum = 0
    for char in payload:
        checksum ^= ord(char)
    return checksum


def validate_checksum(sentence: str) -> bool:
    """True if ``sentence`` is ``$payload*HH`` with a matching checksum."""
    if not sentence.startswith("$"):
        return False
    payload, star, trailer = sentence[1:].partition("*")
    if not star:
        return False
    try:
        expected = int(trailer[:2], 16)
    except ValueError:
        return False
    return nmea_checksum(payload) == expected


class NMEAParser:
    """Stateful parser turning raw sentences into location events.

    Many receivers report speed and course on different sentences than
    position, so the last seen values (and the last GGA altitude) are
    carried forward into each event.
    """

    def __init__(self, validate_checksums: bool = True):
        self._validate_checksums = validate_checksums
        self._listeners: List[LocationListener] = []
        self._fix_date: Optional[dt.date] = None
        self._speed_knots: Optional[float] = None
        self._course_deg: Optional[float] = None
        self._altitude_m: Optional[float] = None
        self.sentences_accepted = 0
        self.sentences_rejected = 0

    def add_location_listener(self, listener: LocationListener) -> None:
        self._listeners.append(listener)

    def remove_location_listener(self, listener: LocationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def reset(self) -> None:
        """Forget carried-forward date, motion and altitude. Listeners are kept."""
        self._fix_date = None
        self._speed_knots = None
        self._course_deg = None
        self._altitude_m = None

    def accept(self, sentence: bytes) -> None:
        """Push one framed sentence from the serial stream."""
        event = self.parse_sentence(sentence.decode("ascii", errors="ignore").strip())
        if event is None:
            return
        for listener in list(self._listeners):
            listener(event)

    def parse_sentence(self, sentence: str) -> Optional[LocationEvent]:
        """Decode one sentence; returns the location event it produces, if any."""
        if not sentence.startswith("$"):
            self.sentences_rejected += 1
            return None
        if self._validate_checksums and not validate_checksum(sentence):
            self.sentences_rejected += 1
            logger.debug("Checksum mismatch: %s", sentence)
            return None

        talker_and_type, *fields = sentence[1:].split("*", 1)[0].split(",")
        sentence_type = talker_and_type[-3:].upper()
        decoder = getattr(self, f"_decode_{sentence_type.lower()}", None)
        if decoder is None:
            return None

        fix = decoder(fields)
        if fix is None:
            self.sentences_rejected += 1
            return None
        self.sentences_accepted += 1

        if not fix.valid or fix.latitude is None or fix.longitude is None:
            return None

        speed = self._speed_knots
        return LocationEvent(
            position=Position(x=fix.longitude, y=fix.latitude, z=self._altitude_m),
            velocity_mps=speed * MPS_PER_KNOT if speed is not None else None,
            course_deg=self._course_deg,
            timestamp=fix.timestamp,
            sentence_type=sentence_type,
        )

    def _timestamp(self, value: str) -> Optional[dt.datetime]:
        fix_time = _utc_time(value)
        if fix_time is None:
            return None
        # GGA and GLL carry no date; use the last RMC date, else today (UTC)
        date = self._fix_date or dt.datetime.now(dt.timezone.utc).date()
        return dt.datetime.combine(date, fix_time)

    # ------------------------------------------------------------------
    # Per-sentence decoders; None means the sentence is truncated

    def _decode_rmc(self, fields: List[str]) -> Optional[_Fix]:
        # time, status, lat, N/S, lon, E/W, speed (kn), course, date, ...
        if len(fields) < 9:
            return None
        self._fix_date = _utc_date(fields[8]) or self._fix_date
        self._update_motion(_number(fields[6]), _number(fields[7]))
        return _Fix(
            latitude=_coordinate(fields[2], fields[3], 2),
            longitude=_coordinate(fields[4], fields[5], 3),
            timestamp=self._timestamp(fields[0]),
            valid=fields[1].upper() == "A",
        )

    def _decode_gga(self, fields: List[str]) -> Optional[_Fix]:
        # time, lat, N/S, lon, E/W, quality, satellites, hdop, altitude, ...
        if len(fields) < 9:
            return None
        altitude = _number(fields[8])
        if altitude is not None:
            self._altitude_m = altitude
        return _Fix(
            latitude=_coordinate(fields[1], fields[2], 2),
            longitude=_coordinate(fields[3], fields[4], 3),
            timestamp=self._timestamp(fields[0]),
            valid=(_number(fields[5], int) or 0) > 0,
        )

    def _decode_gll(self, fields: List[str]) -> Optional[_Fix]:
        # lat, N/S, lon, E/W, time, status
        if len(fields) < 5:
            return None
        status = fields[5].upper() if len(fields) > 5 else ""
        return _Fix(
            latitude=_coordinate(fields[0], fields[1], 2),
            longitude=_coordinate(fields[2], fields[3], 3),
            timestamp=self._timestamp(fields[4]),
            valid=status == "A",
        )

    def _decode_vtg(self, fields: List[str]) -> Optional[_Fix]:
        # course true, T, course magnetic, M, speed (kn), N, speed (km/h), K
        if len(fields) < 7:
            return None
        speed_knots = _number(fields[4])
        if speed_knots is None:
            speed_kmh = _number(fields[6])
            speed_knots = speed_kmh / KMH_PER_KNOT if speed_kmh is not None else None
        self._update_motion(speed_knots, _number(fields[0]))
        return _NO_FIX

    def _update_motion(self, speed_knots: Optional[float], course_deg: Optional[float]) -> None:
        if speed_knots is not None:
            self._speed_knots = speed_knots
        if course_deg is not None:
            self._course_deg = course_deg


__all__ = ["NMEAParser", "LocationListener", "nmea_checksum", "validate_checksum"]
