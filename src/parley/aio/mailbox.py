# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from asyncio import AbstractEventLoop, CancelledError, Event, Future, get_running_loop
from collections import deque
from typing import Self

from . import exceptions

__all__ = 'Mailbox',  # noqa: COM818


class WaiterQueue[T](deque[T]):
    def discard(self, value: T) -> None:
        try:  # noqa: SIM105
            self.remove(value)
        except ValueError:
            pass


class Mailbox[T]:
    """
    An unbounded FIFO mailbox feeding a consumer task.

    Posting never blocks, so it can be done from plain callbacks. The
    consumer acknowledges each received item with :meth:`task_done`,
    which lets other tasks wait with :meth:`join` until everything
    posted so far has been handled.
    """

    def __init__(self) -> None:
        self._queue = deque[T]()
        self._readers = WaiterQueue[Future[T]]()
        self._unfinished = 0
        self._idle = Event()
        self._idle.set()
        self._closed = False

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def _loop(self) -> AbstractEventLoop:
        loop = get_running_loop()
        if '_loop' not in self.__dict__ and self.__dict__.setdefault('_loop', loop) is not loop:
            raise RuntimeError(f'{self!r} is bound to a different event loop')
        return loop

    @property
    def closed(self) -> bool:
        return self._closed

    def post(self, item: T) -> None:
        if self._closed:
            raise exceptions.ClosedResourceError
        self._unfinished += 1
        self._idle.clear()
        while self._readers:
            future = self._readers.popleft()
            if not future.cancelled():
                future.set_result(item)
                return
        self._queue.append(item)

    def receive_nowait(self) -> T:
        if self._closed:
            raise exceptions.EndOfMailbox
        if self._queue:
            return self._queue.popleft()
        raise exceptions.WouldBlock

    async def receive(self) -> T:
        try:
            return self.receive_nowait()
        except exceptions.WouldBlock:
            future = self._loop.create_future()
            self._readers.append(future)
            try:
                return await future
            except CancelledError:
                self._readers.discard(future)
                raise

    def task_done(self) -> None:
        if self._unfinished <= 0:
            raise ValueError('task_done() called more times than there were items posted')
        self._unfinished -= 1
        if self._unfinished == 0:
            self._idle.set()

    async def join(self) -> None:
        await self._idle.wait()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.clear()
        while self._readers:
            future = self._readers.popleft()
            if not future.cancelled():
                future.set_exception(exceptions.EndOfMailbox)
        self._unfinished = 0
        self._idle.set()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: object, exc_value: object, exc_traceback: object) -> None:
        self.close()

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.receive()
        except exceptions.EndOfMailbox as exc:
            raise StopAsyncIteration from exc
