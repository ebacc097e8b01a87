"""
Readiness-driven multiplexer over asyncio tasks.

Handles are registered, started by perform(), waited on with select() and
their completions collected with info_read(). Everything runs on the
calling thread's event loop; httpx does the socket multiplexing.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from enum import IntEnum

from httpmux.transport import HttpxTransport, TransportHandle, TransportResult


logger = logging.getLogger(__name__)


class MultiStatus(IntEnum):
    """Multiplexer status codes. Anything but OK/CALL_PERFORM is fatal."""
    CALL_PERFORM = -1
    OK = 0
    BAD_HANDLE = 1
    BAD_EASY_HANDLE = 2
    INTERNAL_ERROR = 4
    ADDED_ALREADY = 7


@dataclass(frozen=True)
class CompletionMessage:
    """A finished transfer reported by info_read()."""
    handle: TransportHandle
    result: TransportResult


class Multiplexer:
    """Drives many transport handles concurrently on one event loop."""

    def __init__(self, transport: HttpxTransport):
        self._transport = transport
        self._handles: set[TransportHandle] = set()
        self._waiting: list[TransportHandle] = []
        self._tasks: dict[asyncio.Task, TransportHandle] = {}
        self._completed: deque[CompletionMessage] = deque()
        self._status = MultiStatus.OK
        self._closed = False
        self.error: BaseException | None = None

    @property
    def running(self) -> int:
        """Handles registered but not yet finished."""
        return len(self._waiting) + len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    def add_handle(self, handle: TransportHandle) -> MultiStatus:
        if self._closed:
            return MultiStatus.BAD_HANDLE
        if handle in self._handles:
            return MultiStatus.ADDED_ALREADY
        self._handles.add(handle)
        self._waiting.append(handle)
        return MultiStatus.OK

    def remove_handle(self, handle: TransportHandle) -> MultiStatus:
        if handle not in self._handles:
            return MultiStatus.BAD_EASY_HANDLE
        self._handles.discard(handle)
        if handle in self._waiting:
            self._waiting.remove(handle)
        for task, owner in list(self._tasks.items()):
            if owner is handle:
                task.cancel()
                del self._tasks[task]
        return MultiStatus.OK

    async def perform(self) -> tuple[MultiStatus, int]:
        """Start newly registered transfers and collect finished ones.

        Returns CALL_PERFORM when transfers were started, so the caller
        drives again before waiting.
        """
        if self._closed:
            return MultiStatus.BAD_HANDLE, 0

        started = bool(self._waiting)
        for handle in self._waiting:
            task = asyncio.create_task(self._transport.execute_async(handle))
            self._tasks[task] = handle
        self._waiting.clear()

        # let the new tasks reach their first await
        await asyncio.sleep(0)
        self._collect(task for task in list(self._tasks) if task.done())

        if self._status is not MultiStatus.OK:
            return self._status, self.running
        if started:
            return MultiStatus.CALL_PERFORM, self.running
        return MultiStatus.OK, self.running

    async def select(self, timeout: float = 1.0) -> int:
        """Wait until at least one transfer finishes or timeout elapses.

        Returns the number of transfers that finished, or -1 if the
        multiplexer can no longer be waited on.
        """
        if self._closed:
            return -1
        if not self._tasks:
            return 0

        done, _ = await asyncio.wait(
            set(self._tasks),
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        self._collect(done)
        return len(done)

    def info_read(self) -> CompletionMessage | None:
        """Pop the next finished transfer, if any."""
        if self._completed:
            return self._completed.popleft()
        return None

    def _collect(self, done: Iterable[asyncio.Task]) -> None:
        for task in done:
            handle = self._tasks.pop(task, None)
            if handle is None:
                continue
            if task.cancelled():
                continue

            exc = task.exception()
            if exc is not None:
                logger.error(f"Transfer for {handle.url} crashed: {exc!r}")
                self.error = exc
                self._status = MultiStatus.INTERNAL_ERROR
                continue

            self._completed.append(CompletionMessage(handle, task.result()))

    async def close(self) -> None:
        """Cancel unfinished transfers and release all handles."""
        if self._closed:
            return
        self._closed = True

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._tasks.clear()
        self._waiting.clear()
        self._handles.clear()
        self._completed.clear()
