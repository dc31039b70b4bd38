"""Byte-stream to sentence framing.

Serial GPS receivers deliver NMEA text in arbitrarily sized chunks. The
framer accumulates printable bytes and closes the current sentence on any
control byte (value below 32), so CR, LF and CRLF all terminate a line and
runs of control bytes never produce empty sentences.
"""

from __future__ import annotations

from typing import Iterator

from .constants import CONTROL_BYTE_THRESHOLD


class LineFramer:
    """Stateful sentence framer.

    Example:
        framer = LineFramer()
        for sentence in framer.feed(b"$GPGGA,...\\r\\n$GPR"):
            parser.accept(sentence)
        # b"$GPR" stays pending until its terminator arrives
    """

    CONTROL_THRESHOLD = CONTROL_BYTE_THRESHOLD

    def __init__(self) -> None:
        self._pending = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes received since the last emitted sentence."""
        return bytes(self._pending)

    def feed(self, data: bytes) -> Iterator[bytes]:
        """Consume a chunk and yield each sentence it completes.

        The generator is lazy: bytes are only processed as it is iterated.
        """
        threshold = self.CONTROL_THRESHOLD
        pending = self._pending
        for value in data:
            if value < threshold:
                if pending:
                    sentence = bytes(pending)
                    pending.clear()
                    yield sentence
            else:
                pending.append(value)

    def reset(self) -> int:
        """Drop the unterminated tail. Returns the number of bytes dropped."""
        dropped = len(self._pending)
        self._pending.clear()
        return dropped


__all__ = ["LineFramer"]
