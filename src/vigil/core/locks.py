"""
Per-key asyncio locks that are dropped once nobody holds or waits on them.

A plain ``dict[str, asyncio.Lock]`` grows with every key ever seen. Here
each key tracks how many coroutines are inside :meth:`KeyedLocks.hold`
(holding or queued), and :meth:`KeyedLocks.discard` only removes a lock
with no users, so two callers can never end up serialized on different
lock objects for the same key.

Usage:
    locks = KeyedLocks()
    async with locks.hold(rule.id):
        ...
    locks.discard(rule.id)   # when the key is retired
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]

    def in_use(self, key: str) -> bool:
        """True while a coroutine holds or waits on ``key``."""
        return key in self._users

    def discard(self, key: str | None = None) -> None:
        """Drop the lock for ``key`` (every idle lock when None) unless in use."""
        keys = list(self._locks) if key is None else [key]
        for k in keys:
            if k not in self._users:
                self._locks.pop(k, None)

    def __contains__(self, key: str) -> bool:
        return key in self._locks

    def __len__(self) -> int:
        return len(self._locks)


__all__ = [
    "KeyedLocks",
]
