"""Keyed record store interface used by the workflow engine and MO tracker."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Versioned(Generic[T]):
    """A stored value together with the version it was read at."""

    value: T
    version: int


class KeyedStore(ABC, Generic[T]):
    """
    Get/Put/CompareAndSwap storage keyed by string id.

    Versions start at 1 for the first write and increase by one per write.
    ``compare_and_swap`` with ``expected_version=0`` inserts only when the key
    is absent. Implementations hand out copies, so mutating a returned value
    never changes the stored record.
    """

    @abstractmethod
    def get(self, key: str) -> Versioned[T] | None:
        """Return the current value and version, or None if absent."""

    @abstractmethod
    def put(self, key: str, value: T) -> int:
        """Store unconditionally and return the new version."""

    @abstractmethod
    def compare_and_swap(self, key: str, expected_version: int, value: T) -> int:
        """
        Store only if the current version equals ``expected_version``.

        Raises:
            ConcurrentModificationError: If the stored version differs
        """

    @abstractmethod
    def values(self) -> Iterator[T]:
        """Iterate over copies of every stored value."""

    @abstractmethod
    def __contains__(self, key: object) -> bool:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass
