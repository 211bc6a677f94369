"""In-memory implementation of the keyed record store."""

import copy
import logging
import threading
from collections.abc import Iterator
from typing import TypeVar

from ...domain.production.repositories.store import KeyedStore, Versioned
from ...domain.shared.exceptions import ConcurrentModificationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InMemoryKeyedStore(KeyedStore[T]):
    """Dictionary-backed store; values are deep-copied on the way in and out."""

    def __init__(self, name: str = "records") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._records: dict[str, Versioned[T]] = {}

    def get(self, key: str) -> Versioned[T] | None:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            return Versioned(copy.deepcopy(record.value), record.version)

    def put(self, key: str, value: T) -> int:
        with self._lock:
            current = self._records.get(key)
            version = 1 if current is None else current.version + 1
            self._records[key] = Versioned(copy.deepcopy(value), version)
            return version

    def compare_and_swap(self, key: str, expected_version: int, value: T) -> int:
        with self._lock:
            current = self._records.get(key)
            actual_version = 0 if current is None else current.version
            if actual_version != expected_version:
                logger.warning(
                    f"Rejected write to {self.name}/{key}: expected version "
                    f"{expected_version}, found {actual_version}"
                )
                raise ConcurrentModificationError(key, expected_version, actual_version)
            version = actual_version + 1
            self._records[key] = Versioned(copy.deepcopy(value), version)
            return version

    def values(self) -> Iterator[T]:
        with self._lock:
            snapshot = [copy.deepcopy(record.value) for record in self._records.values()]
        return iter(snapshot)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
