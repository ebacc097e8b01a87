"""
Parallel request execution.

Submits a batch of requests over one multiplexer. A transport failure is
attached to the request it belongs to; only a fatal multiplexer status
aborts the batch.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
from collections.abc import Iterable
from enum import Enum

from httpmux.exceptions import AlreadySubmittedError, HTTPRequestError
from httpmux.executor import complete, default_transport, prepare
from httpmux.multiplexer import Multiplexer, MultiStatus
from httpmux.request import Request
from httpmux.transport import HttpxTransport, TransportHandle


logger = logging.getLogger(__name__)

DEFAULT_SELECT_TIMEOUT = 1.0


class BatchState(str, Enum):
    """Lifecycle of one batch."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


class ParallelExecutor:
    """Runs one batch of requests to completion."""

    def __init__(
        self,
        transport: HttpxTransport | None = None,
        select_timeout: float = DEFAULT_SELECT_TIMEOUT,
    ):
        self.transport = transport or default_transport()
        self.select_timeout = select_timeout
        self.state = BatchState.NOT_STARTED
        self._owners: dict[TransportHandle, Request] = {}

    def _set_state(self, state: BatchState) -> None:
        logger.debug(f"Batch {self.state.value} -> {state.value}")
        self.state = state

    async def _drive(self, mux: Multiplexer) -> tuple[MultiStatus, int]:
        status, running = await mux.perform()
        while status is MultiStatus.CALL_PERFORM:
            status, running = await mux.perform()
        return status, running

    def _read_completions(self, mux: Multiplexer) -> None:
        while self._owners:
            message = mux.info_read()
            if message is None:
                break

            request = self._owners.pop(message.handle)
            complete(request, message.result)
            error = request.check_response()
            if error is not None:
                logger.warning(f"{request.method} {request.url} failed: [{error.kind.value}] {error}")
            mux.remove_handle(message.handle)

    async def submit_all_async(self, requests: Iterable[Request]) -> list[Request]:
        """Submit all requests concurrently and wait for every one to finish.

        Raises:
            AlreadySubmittedError: If a request was already submitted or is
                listed twice
            HTTPRequestError: If the multiplexer reports a fatal status
        """
        if self.state is not BatchState.NOT_STARTED:
            raise RuntimeError("A ParallelExecutor runs a single batch.")

        requests = list(requests)
        if len({id(r) for r in requests}) != len(requests):
            raise AlreadySubmittedError("Request listed more than once in batch.")
        for request in requests:
            if request._claimed:
                raise AlreadySubmittedError()

        mux = Multiplexer(self.transport)
        try:
            for request in requests:
                handle = prepare(request)
                self._owners[handle] = request
                mux.add_handle(handle)

            self._set_state(BatchState.RUNNING)
            logger.debug(f"Running batch of {len(requests)} requests")

            status, running = await self._drive(mux)
            while running and status is MultiStatus.OK:
                ready = await mux.select(self.select_timeout)
                if ready > 0:
                    self._read_completions(mux)
                if ready == -1:
                    status = MultiStatus.BAD_HANDLE
                else:
                    status, running = await self._drive(mux)

            if status is not MultiStatus.OK:
                logger.error(f"Fatal multiplexer status {status.name}, aborting batch")
                raise HTTPRequestError(
                    f"Fatal error [{status.name}] processing multiple requests",
                    int(status),
                ) from mux.error

            self._set_state(BatchState.DRAINING)
            self._read_completions(mux)
        finally:
            await mux.close()

        self._set_state(BatchState.DONE)
        return requests


async def submit_all_async(
    requests: Iterable[Request],
    transport: HttpxTransport | None = None,
    select_timeout: float = DEFAULT_SELECT_TIMEOUT,
) -> list[Request]:
    executor = ParallelExecutor(transport, select_timeout)
    return await executor.submit_all_async(requests)


def submit_all(
    requests: Iterable[Request],
    transport: HttpxTransport | None = None,
    select_timeout: float = DEFAULT_SELECT_TIMEOUT,
) -> list[Request]:
    """Submit requests in parallel (synchronous wrapper)."""
    return asyncio.run(submit_all_async(requests, transport, select_timeout))
