"""Latest-known-position cell shared by the ingest and timer threads."""

from __future__ import annotations

import threading
from typing import Optional

from .parsers.nmea_types import LocationEvent


class PositionTracker:
    """Holds the most recent location event and a dirty flag.

    Writes replace the stored event; only the newest event between two
    drains survives. ``write`` and ``drain`` are serialized by a lock, and
    events are immutable, so a drain never observes a partial update.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest: Optional[LocationEvent] = None
        self._dirty = False
        self._writes = 0

    def write(self, event: LocationEvent) -> None:
        with self._lock:
            self._latest = event
            self._dirty = True
            self._writes += 1

    def drain(self) -> Optional[LocationEvent]:
        """Return the latest event if it arrived since the last drain, and clear the flag."""
        with self._lock:
            if not self._dirty:
                return None
            self._dirty = False
            return self._latest

    def peek(self) -> Optional[LocationEvent]:
        """Latest event regardless of the dirty flag."""
        with self._lock:
            return self._latest

    @property
    def is_dirty(self) -> bool:
        with self._lock:
            return self._dirty

    @property
    def writes(self) -> int:
        with self._lock:
            return self._writes

    def reset(self) -> None:
        with self._lock:
            self._latest = None
            self._dirty = False


__all__ = ["PositionTracker"]
