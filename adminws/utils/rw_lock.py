"""
Reader/writer lock for asyncio tasks.

Many readers may hold the lock at once; a writer holds it alone. A waiting
writer blocks new readers so that a steady stream of dispatches cannot
starve register/unregister calls.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ReadWriteLock:
    """
    Writer-preferring reader/writer lock.

    Releasing never loses ownership state: the counters are updated before
    the first await, and waiters are woken by a shielded notification, so a
    release cancelled mid-way still lets the next task in.

    Example:
        >>> lock = ReadWriteLock()
        >>> async with lock.read():
        ...     snapshot = list(items)
        >>> async with lock.write():
        ...     items.append(item)
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def writer_active(self) -> bool:
        return self._writer

    async def acquire_read(self) -> None:
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._writer and not self._waiting_writers
            )
            self._readers += 1

    async def release_read(self) -> None:
        self._readers -= 1
        if self._readers == 0:
            await asyncio.shield(self._notify_all())

    async def acquire_write(self) -> None:
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0
                )
            except asyncio.CancelledError:
                self._waiting_writers -= 1
                # Readers may have been held back only by this writer
                self._cond.notify_all()
                raise
            self._waiting_writers -= 1
            self._writer = True

    async def release_write(self) -> None:
        self._writer = False
        await asyncio.shield(self._notify_all())

    async def _notify_all(self) -> None:
        async with self._cond:
            self._cond.notify_all()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        await self.acquire_read()
        try:
            yield
        finally:
            await self.release_read()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        await self.acquire_write()
        try:
            yield
        finally:
            await self.release_write()
