"""
Round-robin API key rotation.

Each client owns its own ring; there is no process-wide key state. The lock
only guards index arithmetic and is never held across a network call.
"""

from __future__ import annotations

import threading
from typing import Iterable, List


class ApiKeyRing:
    """
    Ordered set of API keys with a moving "current" position.

    Example:
        >>> ring = ApiKeyRing(["a", "b", "c"])
        >>> ring.attempt_order()
        ['a', 'b', 'c']
        >>> ring.mark_failed("a")
        >>> ring.attempt_order()
        ['b', 'c', 'a']
    """

    def __init__(self, keys: Iterable[str]) -> None:
        self._keys: tuple[str, ...] = tuple(k.strip() for k in keys if k and k.strip())
        self._index = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._keys)

    def __bool__(self) -> bool:
        return bool(self._keys)

    def current(self) -> str:
        """The key to try first, or an empty string when the ring is empty."""
        with self._lock:
            return self._keys[self._index] if self._keys else ""

    def attempt_order(self) -> List[str]:
        """Every key once, starting from the current one."""
        with self._lock:
            i = self._index
            return list(self._keys[i:] + self._keys[:i])

    def mark_failed(self, key: str) -> None:
        """Advance past ``key`` if it is still the current one.

        Concurrent requests failing on the same key advance the ring only once.
        """
        with self._lock:
            if len(self._keys) > 1 and self._keys[self._index] == key:
                self._index = (self._index + 1) % len(self._keys)

    def __repr__(self) -> str:
        return f"ApiKeyRing(size={len(self._keys)})"
