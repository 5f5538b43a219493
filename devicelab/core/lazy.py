"""Lazily computed async values with a single in-flight computation."""

import asyncio
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


class LazyValue(Generic[T]):
    """
    Computes a value on first access and caches it.

    Concurrent first callers wait for the same computation. A failed
    computation is not cached; the next caller tries again.
    """

    def __init__(self, compute: Callable[[], Awaitable[T]]) -> None:
        self._compute = compute
        self._lock = asyncio.Lock()
        self._value: T | None = None
        self._computed = False

    @property
    def is_computed(self) -> bool:
        return self._computed

    async def get(self) -> T:
        if self._computed:
            return self._value
        async with self._lock:
            if not self._computed:
                self._value = await self._compute()
                self._computed = True
        return self._value


class KeyedLazyCache(Generic[K, T]):
    """A map of :class:`LazyValue` entries created on demand per key."""

    def __init__(self, compute: Callable[[K], Awaitable[T]]) -> None:
        self._compute = compute
        self._entries: dict[K, LazyValue[T]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: K) -> T:
        entry = self._entries.get(key)
        if entry is None:
            entry = LazyValue(lambda: self._compute(key))
            self._entries[key] = entry
        return await entry.get()
