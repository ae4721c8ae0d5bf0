# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass

__all__ = 'TTLCache',  # noqa: COM818


@dataclass(slots=True)
class CacheEntry[V]:
    value: V
    expires: float


class TTLCache[K: Hashable, V]:
    """
    A cache whose entries expire after a fixed time.

    The clock is a callable returning the current time in seconds, which
    defaults to the monotonic clock and can be replaced to control expiry.
    """

    def __init__(self, ttl: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl <= 0:
            raise ValueError('ttl must be a positive number of seconds')
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(ttl={self.ttl!r}, entries={len(self._entries)})'

    def __contains__(self, key: K) -> bool:
        return self._lookup(key) is not None

    def __len__(self) -> int:
        self.evict()
        return len(self._entries)

    def _lookup(self, key: K) -> CacheEntry[V] | None:
        entry = self._entries.get(key)
        if entry is not None and entry.expires <= self.clock():
            del self._entries[key]
            return None
        return entry

    def get[D](self, key: K, default: D = None) -> V | D:
        entry = self._lookup(key)
        return entry.value if entry is not None else default

    def set(self, key: K, value: V, *, ttl: float | None = None) -> None:
        self._entries[key] = CacheEntry(value, self.clock() + (ttl if ttl is not None else self.ttl))

    def pop[D](self, key: K, default: D = None) -> V | D:
        entry = self._lookup(key)
        if entry is None:
            return default
        del self._entries[key]
        return entry.value

    def evict(self) -> None:
        """Remove all the expired entries"""
        now = self.clock()
        for key in [key for key, entry in self._entries.items() if entry.expires <= now]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()
