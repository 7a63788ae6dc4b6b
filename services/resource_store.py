"""
In-memory resource store with reader/writer locking.

The store is the only shared mutable state in the control plane. It is an injected repository
(one instance per application, created in `main.create_app`) rather than a module global, so
tests can instantiate isolated stores. Locking discipline:

- Any number of readers may hold the lock at once.
- A writer holds it exclusively: no other reader or writer overlaps.
- Waiting writers block new readers, so a steady stream of GETs cannot starve a DELETE.
- The lock is never held across network I/O. Callers read a record, release, talk to the
  vendor, then re-acquire briefly to commit.

Records are deep-copied on the way in and out so a caller mutating its copy while doing vendor
I/O can never change what other requests observe.

Records are not persisted; the store lives and dies with the process.
"""

import itertools
import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from shared.models import ResourceRecord

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Writer-preferring reader/writer lock built on a single condition variable."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ResourceIdGenerator:
    """
    Process-unique resource ids of the form `res-<time_ns>-<sequence>`.

    The timestamp keeps ids roughly sortable by creation time; the sequence, drawn under a lock,
    guarantees uniqueness even when two creates observe the same clock reading.
    """

    def __init__(self, prefix: str = "res") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            sequence = next(self._counter)
        return f"{self._prefix}-{time.time_ns()}-{sequence}"


class ResourceStore:
    """
    Concurrency-safe keyed storage of `ResourceRecord` objects keyed by `id`.

    Args:
        id_generator (Optional[ResourceIdGenerator]): Source of new ids; a fresh generator is
            created if omitted.
    """

    def __init__(self, id_generator: Optional[ResourceIdGenerator] = None) -> None:
        self._records: Dict[str, ResourceRecord] = {}
        self._lock = ReadWriteLock()
        self._ids = id_generator or ResourceIdGenerator()

    def new_id(self) -> str:
        """Return an id never handed out before by this store."""
        return self._ids.next_id()

    def put(self, record: ResourceRecord) -> None:
        """Insert or replace the record stored under `record.id`."""
        snapshot = record.model_copy(deep=True)
        with self._lock.write():
            self._records[snapshot.id] = snapshot
        logger.debug(f"[put] Stored resource {snapshot.id} ({snapshot.status.phase.value})")

    def get(self, resource_id: str) -> Optional[ResourceRecord]:
        """Return a copy of the stored record, or None if the id is unknown."""
        with self._lock.read():
            record = self._records.get(resource_id)
        return record.model_copy(deep=True) if record is not None else None

    def update(
        self, resource_id: str, mutate: Callable[[ResourceRecord], None]
    ) -> Optional[ResourceRecord]:
        """
        Apply `mutate` to the stored record under the write lock and return a copy of the result.

        Returns None without calling `mutate` if the record no longer exists, so a commit that
        races with a delete never resurrects the record. `mutate` must not perform I/O.
        """
        with self._lock.write():
            record = self._records.get(resource_id)
            if record is None:
                return None
            mutate(record)
            result = record.model_copy(deep=True)
        return result

    def delete(self, resource_id: str) -> bool:
        """Remove the record. Returns True if it existed."""
        with self._lock.write():
            existed = self._records.pop(resource_id, None) is not None
        if existed:
            logger.debug(f"[delete] Removed resource {resource_id}")
        return existed

    def list(self) -> List[ResourceRecord]:
        """Return copies of all records, oldest first."""
        with self._lock.read():
            records = list(self._records.values())
        return sorted((r.model_copy(deep=True) for r in records), key=lambda r: r.createdAt)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._records)
