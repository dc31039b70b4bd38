"""Serial ingest loop.

Polls a serial handle for waiting bytes, frames them into sentences and
hands each sentence to the parser. Designed to run on its own daemon
thread; stopping is cooperative via ``stop_reading()``.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

import serial

from ..core.logging_utils import get_module_logger
from .constants import DEFAULT_POLL_BACKOFF_S
from .line_framer import LineFramer

logger = get_module_logger(__name__)

SentenceCallback = Callable[[bytes], None]
ErrorCallback = Callable[[BaseException], None]


class SerialReader:
    """Bridges a serial handle to the sentence consumer.

    The handle must provide ``available()`` (non-blocking byte count) and
    ``read(n)``. When nothing is waiting the loop sleeps ``backoff_s`` on
    the stop event, so a stop request is honoured within one backoff.

    Example:
        reader = SerialReader(handle, parser.accept)
        thread = threading.Thread(target=reader.run, name="SerialReader", daemon=True)
        thread.start()
        ...
        reader.stop_reading()
    """

    def __init__(
        self,
        handle,
        on_sentence: SentenceCallback,
        *,
        backoff_s: float = DEFAULT_POLL_BACKOFF_S,
        on_error: Optional[ErrorCallback] = None,
    ):
        """Initialize the reader.

        Args:
            handle: Serial handle exposing ``available()`` and ``read(n)``
            on_sentence: Called synchronously with each complete sentence
            backoff_s: Sleep when no bytes are waiting
            on_error: Called once with the I/O error that ended the loop
        """
        self._handle = handle
        self._on_sentence = on_sentence
        self._backoff_s = backoff_s
        self._on_error = on_error

        self._stop_event = threading.Event()
        self._running = False
        self._last_error: Optional[BaseException] = None
        self.bytes_read = 0
        self.sentences_read = 0
        self.sentence_failures = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def last_error(self) -> Optional[BaseException]:
        """The I/O error that terminated the loop, if any."""
        return self._last_error

    def stop_reading(self) -> None:
        """Ask the loop to exit at its next iteration."""
        self._stop_event.set()

    def run(self) -> None:
        """Read until stopped or the handle fails."""
        framer = LineFramer()
        self._running = True
        logger.info("Serial reader started (backoff %.3fs)", self._backoff_s)

        try:
            while not self._stop_event.is_set():
                available = self._handle.available()
                if available <= 0:
                    self._stop_event.wait(self._backoff_s)
                    continue

                data = self._handle.read(available)
                self.bytes_read += len(data)
                for sentence in framer.feed(data):
                    self._dispatch(sentence)

        except (serial.SerialException, OSError) as exc:
            self._last_error = exc
            logger.error("Error reading data from serial: %s", exc)
            if self._on_error is not None:
                self._on_error(exc)

        finally:
            dropped = framer.reset()
            if dropped:
                logger.debug("Dropped %d bytes of unterminated sentence", dropped)
            self._running = False
            logger.info(
                "Serial reader stopped (%d bytes, %d sentences)",
                self.bytes_read,
                self.sentences_read,
            )

    def _dispatch(self, sentence: bytes) -> None:
        self.sentences_read += 1
        try:
            self._on_sentence(sentence)
        except Exception:
            # Parser faults cost one sentence, not the stream
            self.sentence_failures += 1
            logger.exception("Sentence handler failed for %r", sentence[:82])


__all__ = ["SerialReader"]
