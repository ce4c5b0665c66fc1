"""
Record store collaborators for CustomerMerge.

The engine only needs to list records, fetch one by internal id, and write
one back. ``InMemoryRecordStore`` implements that contract for tests, the
CLI, and embedding applications that keep records in memory.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol

from customer_merge.exceptions import RecordNotFoundError
from customer_merge.models import CustomerRecord, RecordStatus

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Storage operations the engine depends on."""

    def get_all(self) -> List[CustomerRecord]:
        ...

    def get(self, internal_id: int) -> Optional[CustomerRecord]:
        ...

    def update(self, internal_id: int, record: CustomerRecord) -> CustomerRecord:
        ...


class InMemoryRecordStore:
    """
    Thread-safe dictionary-backed record store.

    Records are copied on the way in and out so callers never share mutable
    state with the store. Internal ids are assigned sequentially and never
    reused, even after ``clear``.
    """

    def __init__(self, records: Optional[Iterable[CustomerRecord]] = None):
        self._records: Dict[int, CustomerRecord] = {}
        self._lock = threading.RLock()
        self._next_id = 1

        for record in records or []:
            self._records[record.internal_id] = copy.deepcopy(record)
            self._next_id = max(self._next_id, record.internal_id + 1)

    def get_all(self) -> List[CustomerRecord]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._records.values()]

    def get(self, internal_id: int) -> Optional[CustomerRecord]:
        with self._lock:
            record = self._records.get(internal_id)
            return copy.deepcopy(record) if record is not None else None

    def update(self, internal_id: int, record: CustomerRecord) -> CustomerRecord:
        """
        Replace the stored record.

        Args:
            internal_id: Id of the record to replace
            record: New record state; its ``internal_id`` must match

        Returns:
            Copy of the stored record

        Raises:
            RecordNotFoundError: If no record has this id
            ValueError: If the record carries a different internal id
        """
        if record.internal_id != internal_id:
            raise ValueError(
                f"Internal id is immutable: {record.internal_id} != {internal_id}"
            )

        with self._lock:
            if internal_id not in self._records:
                raise RecordNotFoundError(internal_id, role="Customer")
            self._records[internal_id] = copy.deepcopy(record)
            return copy.deepcopy(record)

    def bulk_create(self, payloads: Iterable[Dict[str, Any]]) -> List[CustomerRecord]:
        """
        Create records from insert payloads, assigning internal ids.

        Args:
            payloads: Dictionaries with record fields except ``internal_id``

        Returns:
            Created records in payload order
        """
        created: List[CustomerRecord] = []
        with self._lock:
            for payload in payloads:
                data = dict(payload)
                data["internal_id"] = self._next_id
                data.setdefault("status", RecordStatus.CLEAN.value)
                record = CustomerRecord.from_dict(data)
                self._records[record.internal_id] = record
                self._next_id += 1
                created.append(copy.deepcopy(record))

        logger.info(f"Created {len(created)} customer records")
        return created

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
        logger.info("Cleared all customer records")

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class RecordLockRegistry:
    """
    Per-record locks keyed by internal id.

    An entry only lives while some caller holds or waits for it, so the
    registry does not grow with the number of distinct ids ever requested.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # internal id -> [lock, number of callers using it]
        self._locks: Dict[int, List[Any]] = {}

    def _checkout(self, internal_id: int) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(internal_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[internal_id] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, internal_id: int) -> None:
        with self._guard:
            entry = self._locks[internal_id]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[internal_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, internal_ids: Iterable[int]) -> Iterator[None]:
        """
        Hold the locks of all given records.

        Locks are taken in ascending id order so two merges over
        overlapping records cannot deadlock.
        """
        ids = sorted(set(internal_ids))
        locks = [self._checkout(internal_id) for internal_id in ids]
        acquired: List[threading.Lock] = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for internal_id in ids:
                self._checkin(internal_id)
