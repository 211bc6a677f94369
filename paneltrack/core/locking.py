"""Per-key locks enforcing a single writer per panel or order at a time."""

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class _Slot:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.holders = 0


class KeyedLocks:
    """
    Registry of re-entrant locks, one per key.

    Mutations of the same key are serialized; different keys proceed
    concurrently. A lock exists only while some thread holds or waits for it,
    so the registry does not grow with the number of keys ever seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._slots: dict[Hashable, _Slot] = {}

    def _acquire_slot(self, key: Hashable) -> _Slot:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = _Slot()
                self._slots[key] = slot
            slot.holders += 1
            return slot

    def _release_slot(self, key: Hashable, slot: _Slot) -> None:
        with self._guard:
            slot.holders -= 1
            if slot.holders == 0:
                del self._slots[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        slot = self._acquire_slot(key)
        try:
            with slot.lock:
                yield
        finally:
            self._release_slot(key, slot)

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._slots)
