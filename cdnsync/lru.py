"""Least-recently-used tracker for cached files."""

from __future__ import annotations

from collections import OrderedDict


class LRUCache:
    """Tracks keys with an integer value, ordered from least to most recently used."""

    def __init__(self) -> None:
        self._entries: OrderedDict[str, int] = OrderedDict()

    def touch(self, key: str) -> int:
        """Mark ``key`` as most recently used and return its value."""
        if key not in self._entries:
            raise KeyError(key)
        self._entries.move_to_end(key)
        return self._entries[key]

    def set(self, key: str, value: int) -> None:
        """Insert or update ``key``, making it the most recently used."""
        self._entries[key] = value
        self._entries.move_to_end(key)

    def evict(self) -> str:
        """Remove and return the least recently used key."""
        if not self._entries:
            raise KeyError("cache is empty")
        key, _ = self._entries.popitem(last=False)
        return key

    def discard(self, key: str) -> None:
        """Remove ``key`` if it is tracked."""
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries