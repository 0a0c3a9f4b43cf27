"""FIFO serialization of log mutations.

Checkpoint refreshes and edit appends both read-then-write the history
tree. Event handlers fire them concurrently, so every mutation goes through
one ``SerializationGate``: operations run one at a time, in the order they
were submitted, each in a worker thread via ``asyncio.to_thread``.

A failed operation only fails its own future; the next queued operation
still runs. Once queued, an operation is not cancellable: cancelling the
returned future only stops the caller waiting. The operation still runs in
its turn, and the next one starts only after its worker thread returns.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SerializationGate:
    """Asynchronous FIFO mutex.

    Must be used from within a running event loop.
    """

    def __init__(self) -> None:
        self._tail: asyncio.Future[None] | None = None
        self._pending = 0

    @property
    def pending(self) -> int:
        """Operations queued or running."""
        return self._pending

    def submit(self, operation: Callable[..., T], *args: Any) -> asyncio.Future[T]:
        """Queue ``operation(*args)`` behind everything submitted so far.

        Queuing happens synchronously, so call order is execution order.

        Returns:
            A future for the operation's result. Cancelling it does not
            cancel the operation.
        """
        loop = asyncio.get_running_loop()
        previous = self._tail
        finished: asyncio.Future[None] = loop.create_future()
        self._tail = finished
        self._pending += 1
        result: asyncio.Future[T] = loop.create_future()

        def _finish(inner: asyncio.Future[T]) -> None:
            self._pending -= 1
            finished.set_result(None)
            _deliver(inner, result, operation)

        def _start(_: object = None) -> None:
            inner = asyncio.ensure_future(asyncio.to_thread(operation, *args))
            inner.add_done_callback(_finish)

        if previous is None:
            _start()
        else:
            previous.add_done_callback(_start)
        return result

    async def run(self, operation: Callable[..., T], *args: Any) -> T:
        """Run ``operation(*args)`` after all earlier submissions complete."""
        return await self.submit(operation, *args)


def _deliver(inner: asyncio.Future[T], result: asyncio.Future[T], operation: Callable) -> None:
    """Copy the worker's outcome to the caller's future."""
    if inner.cancelled():
        if not result.done():
            result.cancel()
        return
    exc = inner.exception()
    if result.done():
        # Caller stopped waiting; nobody else will see the failure
        if exc is not None:
            logger.error(f"Abandoned operation {getattr(operation, '__name__', operation)!r} failed: {exc!r}")
        return
    if exc is not None:
        result.set_exception(exc)
    else:
        result.set_result(inner.result())
