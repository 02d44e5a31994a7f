"""Mirrored provider <-> subscriber index with per-pairing accrual clocks."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from ..exceptions import AlreadyPaired
from .indexed_set import IndexedSet


class PairingIndex:
    def __init__(self):
        self._by_provider: Dict[int, IndexedSet[int, int]] = {}
        self._by_subscriber: Dict[int, IndexedSet[int, int]] = {}
        self._last_settled: Dict[Tuple[int, int], datetime] = {}

    def add_pairing(self, provider_id: int, subscriber_id: int, now: datetime) -> None:
        subs = self._by_provider.setdefault(provider_id, IndexedSet())
        provs = self._by_subscriber.setdefault(subscriber_id, IndexedSet())
        # Both sides are checked before either is touched
        if subscriber_id in subs or provider_id in provs:
            raise AlreadyPaired(provider_id, subscriber_id)
        subs.insert(subscriber_id, subscriber_id)
        provs.insert(provider_id, provider_id)
        self._last_settled[(provider_id, subscriber_id)] = now

    def remove_pairing(self, provider_id: int, subscriber_id: int) -> bool:
        """Unlink a pairing on both sides. Returns False if it was not live."""
        removed_p = False
        removed_s = False
        subs = self._by_provider.get(provider_id)
        if subs is not None:
            removed_p = subs.remove_by_key(subscriber_id)
        provs = self._by_subscriber.get(subscriber_id)
        if provs is not None:
            removed_s = provs.remove_by_key(provider_id)
        self._last_settled.pop((provider_id, subscriber_id), None)
        return removed_p or removed_s

    def is_paired(self, provider_id: int, subscriber_id: int) -> bool:
        subs = self._by_provider.get(provider_id)
        return subs is not None and subscriber_id in subs

    def subscribers_of(self, provider_id: int) -> List[int]:
        subs = self._by_provider.get(provider_id)
        return subs.values() if subs is not None else []

    def providers_of(self, subscriber_id: int) -> List[int]:
        provs = self._by_subscriber.get(subscriber_id)
        return provs.values() if provs is not None else []

    def subscriber_set(self, provider_id: int) -> Optional[IndexedSet[int, int]]:
        return self._by_provider.get(provider_id)

    def provider_set(self, subscriber_id: int) -> Optional[IndexedSet[int, int]]:
        return self._by_subscriber.get(subscriber_id)

    def last_settled(self, provider_id: int, subscriber_id: int) -> datetime:
        return self._last_settled[(provider_id, subscriber_id)]

    def set_last_settled(self, provider_id: int, subscriber_id: int, at: datetime) -> None:
        key = (provider_id, subscriber_id)
        if key not in self._last_settled:
            raise KeyError(key)
        self._last_settled[key] = at

    def pairs(self) -> Iterator[Tuple[int, int, datetime]]:
        for (p, s), at in list(self._last_settled.items()):
            yield p, s, at

    def provider_ids(self) -> List[int]:
        return list(self._by_provider)

    def subscriber_ids(self) -> List[int]:
        return list(self._by_subscriber)

    @classmethod
    def from_lists(
        cls,
        by_provider: Dict[int, List[int]],
        by_subscriber: Dict[int, List[int]],
        last_settled: Dict[Tuple[int, int], datetime],
    ) -> "PairingIndex":
        """Rebuild an index keeping each side's stored order."""
        index = cls()
        for provider_id, subscriber_ids in by_provider.items():
            subs = index._by_provider.setdefault(provider_id, IndexedSet())
            for subscriber_id in subscriber_ids:
                subs.insert(subscriber_id, subscriber_id)
        for subscriber_id, provider_ids in by_subscriber.items():
            provs = index._by_subscriber.setdefault(subscriber_id, IndexedSet())
            for provider_id in provider_ids:
                provs.insert(provider_id, provider_id)
        index._last_settled = dict(last_settled)
        return index

    def __len__(self) -> int:
        return len(self._last_settled)
