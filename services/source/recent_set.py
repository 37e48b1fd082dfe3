"""Bounded window of recently emitted image identifiers."""

from __future__ import annotations

from collections import OrderedDict
from typing import Iterator


class RecentSet:
    """FIFO-evicting set of identifiers with a fixed capacity.

    Insertion order is the eviction order: a repeated identifier does not
    refresh its position. Owned by a single image source, so no locking.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("RecentSet capacity must be at least 1.")
        self.capacity = capacity
        self._entries: "OrderedDict[str, None]" = OrderedDict()

    def add(self, identifier: str) -> bool:
        """Insert ``identifier``; return False if it was already present."""
        if identifier in self._entries:
            return False
        if len(self._entries) >= self.capacity:
            self._entries.popitem(last=False)
        self._entries[identifier] = None
        return True

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
