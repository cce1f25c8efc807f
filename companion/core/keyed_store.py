"""
Concurrent keyed store with atomic per-key transitions.

Provides the in-memory placeholder for every piece of shared engine state
(knowledge states, topic review data, ratings, sequence rewards, ...).

Design:
- Lock striping: each key hashes to one of N shards, each guarded by its
  own lock, so unrelated keys never contend on a global lock.
- Values are treated as immutable. A transition computes a new value from
  the current one and swaps it in while holding the shard lock, so readers
  see either the old or the new value and never a half-applied update.
- If the transition function raises, nothing is written.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Hashable, Iterator
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")
R = TypeVar("R")


class _Shard(Generic[K, V]):
    __slots__ = ("lock", "data")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.data: dict[K, V] = {}


class KeyedStore(Generic[K, V]):
    """
    Sharded map supporting atomic read-modify-write per key.

    Example:
        store = KeyedStore[str, int]()
        store.update("alice", lambda count: (count or 0) + 1)
    """

    def __init__(self, shards: int = 32, name: str = "store"):
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self.name = name
        self._shards: list[_Shard[K, V]] = [_Shard() for _ in range(shards)]

    def _shard(self, key: K) -> _Shard[K, V]:
        return self._shards[hash(key) % len(self._shards)]

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, key: K, default: V | None = None) -> V | None:
        shard = self._shard(key)
        with shard.lock:
            return shard.data.get(key, default)

    def __contains__(self, key: object) -> bool:
        shard = self._shard(key)  # type: ignore[arg-type]
        with shard.lock:
            return key in shard.data

    def __len__(self) -> int:
        return sum(len(s.data) for s in self._shards)

    def snapshot(self) -> dict[K, V]:
        """Point-in-time copy of all entries (consistent per shard)."""
        result: dict[K, V] = {}
        for shard in self._shards:
            with shard.lock:
                result.update(shard.data)
        return result

    def keys(self) -> Iterator[K]:
        return iter(self.snapshot())

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def apply(
        self,
        key: K,
        transition: Callable[[V | None], tuple[V | None, R]],
    ) -> R:
        """
        Atomically transform the value at key.

        Args:
            key: Entry key
            transition: Receives the current value (None if absent) and
                returns (new_value, result). Runs under the shard lock, so
                it must be short and must not touch this store.
                A new_value of None removes the entry.

        Returns:
            The result half of the transition's return value.
        """
        shard = self._shard(key)
        with shard.lock:
            current = shard.data.get(key)
            new_value, result = transition(current)
            if new_value is None:
                shard.data.pop(key, None)
            else:
                shard.data[key] = new_value
            return result

    def update(self, key: K, fn: Callable[[V | None], V]) -> V:
        """Atomically replace the value at key with fn(current) and return it."""

        def transition(current: V | None) -> tuple[V, V]:
            new_value = fn(current)
            return new_value, new_value

        return self.apply(key, transition)

    def put(self, key: K, value: V) -> None:
        shard = self._shard(key)
        with shard.lock:
            shard.data[key] = value

    def put_if(self, key: K, value: V, predicate: Callable[[V | None], bool]) -> bool:
        """Store value only if predicate(current) holds. Returns whether it was stored."""
        shard = self._shard(key)
        with shard.lock:
            if not predicate(shard.data.get(key)):
                return False
            shard.data[key] = value
            return True

    def pop(self, key: K, default: V | None = None) -> V | None:
        shard = self._shard(key)
        with shard.lock:
            return shard.data.pop(key, default)

    def evict(self, predicate: Callable[[K, V], bool]) -> int:
        """Remove every entry for which predicate(key, value) holds. Returns the count."""
        removed = 0
        for shard in self._shards:
            with shard.lock:
                doomed = [k for k, v in shard.data.items() if predicate(k, v)]
                for k in doomed:
                    del shard.data[k]
                removed += len(doomed)
        return removed

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.data.clear()

    def __repr__(self) -> str:
        return f"KeyedStore(name={self.name!r}, size={len(self)}, shards={len(self._shards)})"
