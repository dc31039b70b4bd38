"""Persistence backends for logged track records.

A sink accepts records without blocking the caller: ``append`` returns a
``concurrent.futures.Future`` that completes once the record is durable.
Callers that do not care about completion simply drop the future.
"""

from __future__ import annotations

import csv
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from queue import Empty, Full, Queue
from typing import List, Optional, TextIO, Tuple

from ...core.logging_utils import get_module_logger
from ..constants import TRACK_RECORD_FIELDS
from ..errors import SinkError
from .records import LoggedRecord

logger = get_module_logger(__name__)


def _failed_future(exc: BaseException) -> "Future[None]":
    future: Future[None] = Future()
    future.set_exception(exc)
    return future


class RecordSink(ABC):
    """Append-only destination for track records."""

    def __init__(self) -> None:
        # Guards open/close against concurrent appends from the timer thread
        self._state_lock = threading.Lock()
        self._pending_lock = threading.Lock()
        self._pending = 0

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @property
    def pending(self) -> int:
        """Records appended but not yet committed."""
        with self._pending_lock:
            return self._pending

    @abstractmethod
    def open(self) -> bool:
        """Prepare storage (file, table). Returns True when ready for appends."""

    @abstractmethod
    def append(self, record: LoggedRecord) -> "Future[None]":
        """Queue a record for writing."""

    @abstractmethod
    def close(self) -> None:
        """Commit outstanding records and release storage."""

    def _track(self, future: "Future[None]") -> "Future[None]":
        with self._pending_lock:
            self._pending += 1
        future.add_done_callback(self._untrack)
        return future

    def _untrack(self, _future: "Future[None]") -> None:
        with self._pending_lock:
            self._pending -= 1

    def __enter__(self) -> "RecordSink":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class CsvRecordSink(RecordSink):
    """Writes records to a CSV file from a background writer thread.

    Rows are buffered and flushed when ``flush_threshold`` rows are waiting
    or the queue has been idle for half a second.

    Example:
        sink = CsvRecordSink(Path("gps_data"), "GPS Test")
        sink.open()
        sink.append(record)
        sink.close()
    """

    def __init__(
        self,
        output_dir: Path,
        track_id: str,
        flush_threshold: int = 8,
        max_queue: int = 1000,
    ):
        super().__init__()
        self.output_dir = output_dir
        self.track_id = track_id
        self._flush_threshold = flush_threshold

        self._record_file: Optional[TextIO] = None
        self._record_writer = None
        self._record_path: Optional[Path] = None

        self._write_queue: Queue[Optional[Tuple[LoggedRecord, Future]]] = Queue(maxsize=max_queue)
        self._writer_thread: Optional[threading.Thread] = None
        self._dropped_records = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def filepath(self) -> Optional[Path]:
        return self._record_path

    @property
    def dropped_records(self) -> int:
        return self._dropped_records

    def _sanitize_track_id(self) -> str:
        """Convert track ID to a safe filename component."""
        return "".join(c if c.isalnum() or c in "-_" else "_" for c in self.track_id) or "track"

    def _create_track_file(self) -> Tuple[Path, TextIO]:
        """Create a new track file; never reopens one that already holds records."""
        stem = f"{self._sanitize_track_id()}_{time.strftime('%Y%m%d_%H%M%S')}"
        suffix = 0
        while True:
            name = f"{stem}_{suffix}.csv" if suffix else f"{stem}.csv"
            path = self.output_dir / name
            try:
                return path, path.open("x", encoding="utf-8", newline="")
            except FileExistsError:
                suffix += 1

    def open(self) -> bool:
        if self._open:
            logger.debug("CSV sink already open: %s", self._record_path)
            return True

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path, handle = self._create_track_file()
            writer = csv.writer(handle)
            writer.writerow(TRACK_RECORD_FIELDS)
            handle.flush()
        except OSError as exc:
            logger.error("Failed to open CSV sink in %s: %s", self.output_dir, exc)
            return False

        self._record_file = handle
        self._record_writer = writer
        self._record_path = path
        self._dropped_records = 0

        self._writer_thread = threading.Thread(
            target=self._writer_loop,
            name=f"GPSWriter-{self._sanitize_track_id()}",
            daemon=True,
        )
        self._writer_thread.start()
        self._open = True
        logger.info("Opened CSV track file: %s", path)
        return True

    def append(self, record: LoggedRecord) -> "Future[None]":
        future: Future[None] = Future()
        with self._state_lock:
            if not self._open:
                return _failed_future(SinkError("CSV sink is not open"))
            try:
                self._write_queue.put_nowait((record, future))
            except Full:
                self._dropped_records += 1
                logger.warning("Track record queue full (dropped: %d)", self._dropped_records)
                future.set_exception(SinkError("record queue full"))
                return future
        return self._track(future)

    def close(self) -> None:
        with self._state_lock:
            if not self._open:
                return
            self._open = False
            if self._writer_thread and self._writer_thread.is_alive():
                self._write_queue.put(None)

        if self._writer_thread:
            self._writer_thread.join(timeout=5.0)
            if self._writer_thread.is_alive():
                logger.error("Writer thread did not stop in time for %s", self._record_path)
        self._writer_thread = None

        if self._record_file:
            try:
                self._record_file.close()
            except OSError as exc:
                logger.debug("Error closing track file: %s", exc)

        if self._dropped_records:
            logger.warning("Track file closed with %d dropped records", self._dropped_records)
        logger.info("Closed CSV track file: %s", self._record_path)

        self._record_file = None
        self._record_writer = None

    def _writer_loop(self) -> None:
        """Background thread that writes queued records to disk."""
        buffer: List[Tuple[LoggedRecord, Future]] = []
        while True:
            try:
                item = self._write_queue.get(timeout=0.5)
            except Empty:
                if buffer:
                    self._flush_buffer(buffer)
                    buffer.clear()
                continue

            if item is None:
                if buffer:
                    self._flush_buffer(buffer)
                break

            buffer.append(item)
            if len(buffer) >= self._flush_threshold:
                self._flush_buffer(buffer)
                buffer.clear()

    def _flush_buffer(self, buffer: List[Tuple[LoggedRecord, Future]]) -> None:
        try:
            for record, _ in buffer:
                self._record_writer.writerow(record.as_row())
            self._record_file.flush()
        except (OSError, ValueError) as exc:
            logger.error("Failed to flush %d track records to disk: %s", len(buffer), exc)
            for _, future in buffer:
                future.set_exception(exc)
            return
        for _, future in buffer:
            future.set_result(None)


class SqliteRecordSink(RecordSink):
    """Stores records in a SQLite table.

    All database work runs on a single worker thread, which owns the
    connection for the lifetime of the sink.
    """

    def __init__(self, db_path: Path, table: str = "gps_tracks"):
        super().__init__()
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self.db_path = db_path
        self.table = table
        self._executor: Optional[ThreadPoolExecutor] = None
        self._conn: Optional[sqlite3.Connection] = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> bool:
        if self._open:
            return True

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="GPSSqlite")
        try:
            self._executor.submit(self._open_db).result()
        except (sqlite3.Error, OSError) as exc:
            logger.error("Failed to open track database %s: %s", self.db_path, exc)
            self._executor.shutdown(wait=True)
            self._executor = None
            return False

        self._open = True
        logger.info("Opened track table %s in %s", self.table, self.db_path)
        return True

    def append(self, record: LoggedRecord) -> "Future[None]":
        with self._state_lock:
            if not self._open or self._executor is None:
                return _failed_future(SinkError("SQLite sink is not open"))
            future = self._executor.submit(self._insert, record)
        return self._track(future)

    def count(self) -> int:
        """Number of committed records."""
        if not self._open or self._executor is None:
            raise SinkError("SQLite sink is not open")
        return self._executor.submit(self._count).result()

    def close(self) -> None:
        with self._state_lock:
            if not self._open or self._executor is None:
                return
            self._open = False
        try:
            self._executor.submit(self._close_db).result()
        except sqlite3.Error as exc:
            logger.warning("Error closing track database: %s", exc)
        finally:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.info("Closed track database %s", self.db_path)

    # Worker-thread helpers

    def _open_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        columns = ", ".join(TRACK_RECORD_FIELDS)
        conn.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table} "
            f"(id INTEGER PRIMARY KEY AUTOINCREMENT, {columns})"
        )
        conn.commit()
        self._conn = conn

    def _insert(self, record: LoggedRecord) -> None:
        placeholders = ", ".join("?" for _ in TRACK_RECORD_FIELDS)
        columns = ", ".join(TRACK_RECORD_FIELDS)
        try:
            self._conn.execute(
                f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})",
                record.as_row(),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            logger.error("Failed to insert track record: %s", exc)
            raise

    def _count(self) -> int:
        return self._conn.execute(f"SELECT COUNT(*) FROM {self.table}").fetchone()[0]

    def _close_db(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def create_sink(kind: str, output_dir: Path, track_id: str) -> RecordSink:
    """Build a sink from its config name (``csv`` or ``sqlite``)."""
    kind = kind.lower()
    if kind == "csv":
        return CsvRecordSink(output_dir, track_id)
    if kind == "sqlite":
        return SqliteRecordSink(output_dir / "gps_tracks.sqlite")
    raise ValueError(f"Unknown sink type '{kind}' (expected 'csv' or 'sqlite')")


__all__ = ["RecordSink", "CsvRecordSink", "SqliteRecordSink", "create_sink"]
