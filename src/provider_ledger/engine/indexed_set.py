"""Dense sequence with O(1) removal by key (swap-delete).

Positions are 1-based; 0 means "absent". Removing an entry moves the last
element into the vacated slot, so iteration order is not stable across
removals. Callers that remove while walking a set must walk a snapshot.
"""

from __future__ import annotations

from typing import Dict, Generic, Hashable, Iterator, List, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

ABSENT = 0


class IndexedSet(Generic[K, V]):
    def __init__(self):
        self._keys: List[K] = []
        self._values: List[V] = []
        self._positions: Dict[K, int] = {}

    def insert(self, key: K, value: V) -> int:
        """Append ``value`` under ``key`` and return its 1-based position.

        Raises:
            KeyError: ``key`` is already present
        """
        if self._positions.get(key, ABSENT) != ABSENT:
            raise KeyError(key)
        self._keys.append(key)
        self._values.append(value)
        pos = len(self._values)
        self._positions[key] = pos
        return pos

    def remove_by_key(self, key: K) -> bool:
        """Swap-delete ``key``. Returns False (no-op) if it is absent."""
        pos = self._positions.pop(key, ABSENT)
        if pos == ABSENT:
            return False

        idx = pos - 1
        last = len(self._values) - 1
        if idx != last:
            moved_key = self._keys[last]
            self._keys[idx] = moved_key
            self._values[idx] = self._values[last]
            self._positions[moved_key] = pos
        self._keys.pop()
        self._values.pop()
        return True

    def position(self, key: K) -> int:
        return self._positions.get(key, ABSENT)

    def positions(self) -> Dict[K, int]:
        return dict(self._positions)

    def get(self, key: K) -> V:
        pos = self._positions.get(key, ABSENT)
        if pos == ABSENT:
            raise KeyError(key)
        return self._values[pos - 1]

    def values(self) -> List[V]:
        """Snapshot of the live values (order not meaningful)."""
        return list(self._values)

    def keys(self) -> List[K]:
        return list(self._keys)

    def items(self) -> List[Tuple[K, V]]:
        return list(zip(self._keys, self._values))

    def __contains__(self, key: object) -> bool:
        return self._positions.get(key, ABSENT) != ABSENT  # type: ignore[call-overload]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[V]:
        return iter(list(self._values))

    def __repr__(self) -> str:
        return f"IndexedSet({self.items()!r})"
