"""Operators over async iterables.

These are the stream building blocks ``StreamUseCase`` composes:

- ``defer``: create the upstream lazily, when the stream is first pulled.
- ``catch``: turn an upstream fault into one substitute item and stop.
- ``flow_on``: run the upstream on a ``Dispatcher`` and hand items back to
  the consumer through a bounded channel.

Every operator closes its upstream when it is closed itself, so cancelling
or abandoning a consumer reaches the producer as a cancellation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Callable, Coroutine
    from types import TracebackType

    from flowstate.dispatch import Dispatcher

log = logging.getLogger(__name__)

_END = object()

# Never turned into items by `catch`.
_CONTROL_SIGNALS = (
    asyncio.CancelledError,
    GeneratorExit,
    KeyboardInterrupt,
    SystemExit,
)


class _Closing[T]:
    """Async context manager that closes an iterator on exit, if it can be."""

    def __init__(self, iterator: AsyncIterator[T]) -> None:
        self._iterator = iterator

    async def __aenter__(self) -> AsyncIterator[T]:
        return self._iterator

    async def __aexit__(
        self,
        _: type[BaseException] | None,
        __: BaseException | None,
        ___: TracebackType | None,
    ) -> None:
        aclose = getattr(self._iterator, "aclose", None)
        if aclose is not None:
            await aclose()


def _consume_future_exception(fut: asyncio.Future[Any]) -> None:
    """Avoid 'exception was never retrieved' for producers nobody awaits."""
    if not fut.cancelled():
        _ = fut.exception()


def _being_cancelled() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


async def defer[T](factory: Callable[[], AsyncIterable[T]]) -> AsyncIterator[T]:
    """Call ``factory`` on first pull and re-emit what it produces."""
    async with _Closing(aiter(factory())) as iterator:
        async for item in iterator:
            yield item


async def catch[T, F](
    source: AsyncIterable[T], handler: Callable[[BaseException], F]
) -> AsyncIterator[T | F]:
    """Re-emit ``source``; on an upstream fault emit ``handler(fault)`` and stop.

    Only faults raised while pulling from ``source`` are handled, whatever
    their type, except the control signals ``asyncio.CancelledError``,
    ``GeneratorExit``, ``KeyboardInterrupt`` and ``SystemExit``, which
    propagate untouched. A fault raised while the current task is being
    cancelled is treated as part of that cancellation.
    """
    fault: BaseException | None = None
    async with _Closing(aiter(source)) as iterator:
        while True:
            try:
                item = await anext(iterator)
            except StopAsyncIteration:
                return
            except _CONTROL_SIGNALS:
                raise
            except BaseException as exc:
                if _being_cancelled():
                    raise asyncio.CancelledError from exc
                fault = exc
                break
            yield item
    yield handler(fault)


class _Channel[T]:
    """Order-preserving, bounded hand-off into the consumer's event loop.

    Producers may live on the consumer's loop or on any other loop; items
    always land in a queue owned by the consumer's loop. ``capacity`` slots
    bound how far a producer can run ahead.

    Bookkeeping for the producer's lifetime (``open``/``release``) also runs
    on the consumer's loop, so the consumer knows whether a producer it
    abandons still has cleanup in flight.
    """

    def __init__(self, capacity: int) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._slots = asyncio.Semaphore(capacity)
        self._closed = False
        self._running = False
        self._released = asyncio.Event()

    def _on_consumer_loop(self) -> bool:
        return asyncio.get_running_loop() is self._loop

    async def _open(self) -> None:
        if self._closed:
            raise asyncio.CancelledError
        self._running = True

    async def _put(self, item: T) -> None:
        await self._slots.acquire()
        if self._closed:
            # The consumer is gone; the producer must stop here.
            raise asyncio.CancelledError
        self._queue.put_nowait(item)

    async def _call(self, coro: Coroutine[Any, Any, None]) -> None:
        if self._on_consumer_loop():
            await coro
            return
        await asyncio.wrap_future(asyncio.run_coroutine_threadsafe(coro, self._loop))

    async def open(self) -> None:
        """Register the producer; refused once the consumer has left."""
        await self._call(self._open())

    async def send(self, item: T) -> None:
        await self._call(self._put(item))

    def release(self) -> None:
        """Signal, from any loop, that the producer has finished cleaning up."""
        if self._on_consumer_loop():
            self._released.set()
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._released.set)

    async def receive(self) -> Any:
        item = await self._queue.get()
        if item is not _END:
            self._slots.release()
        return item

    def finish(self) -> None:
        self._queue.put_nowait(_END)

    def close(self) -> None:
        self._closed = True

    async def wait_released(self) -> None:
        """Wait for a producer that got past ``open`` to finish."""
        if self._running:
            await self._released.wait()


async def _pump[T](source: AsyncIterable[T], channel: _Channel[T]) -> None:
    try:
        await channel.open()
        async with _Closing(aiter(source)) as iterator:
            async for item in iterator:
                await channel.send(item)
    finally:
        channel.release()


async def flow_on[T](
    source: AsyncIterable[T], dispatcher: Dispatcher
) -> AsyncIterator[T]:
    """Pull ``source`` on ``dispatcher`` and re-emit its items in order.

    Upstream faults are re-raised to the consumer after the items produced
    before them. Closing or cancelling the consumer cancels the producer and
    returns once the producer has finished its cleanup, on whichever loop it
    runs. If the producer is cancelled from its own side (e.g. its dispatcher
    shut down), the consumer sees ``asyncio.CancelledError``.
    """
    if not dispatcher.is_dispatch_needed():
        async with _Closing(aiter(source)) as iterator:
            async for item in iterator:
                yield item
        return

    channel: _Channel[T] = _Channel(dispatcher.capacity)
    producer = dispatcher.submit(_pump(source, channel))
    producer.add_done_callback(_consume_future_exception)
    producer.add_done_callback(lambda _: channel.finish())
    try:
        while True:
            item = await channel.receive()
            if item is _END:
                break
            yield item
        if producer.cancelled():
            raise asyncio.CancelledError
        exc = producer.exception()
        if exc is not None:
            raise exc
    finally:
        channel.close()
        if not producer.done():
            log.debug("Consumer left early; cancelling producer on %r", dispatcher)
            producer.cancel()
            await asyncio.wait([producer])
        # On a foreign loop the future above settles before the work does.
        await channel.wait_released()


async def collect[T](stream: AsyncIterable[T], *, limit: int | None = None) -> list[T]:
    """Drain ``stream`` into a list, stopping after ``limit`` items if given.

    When stopping early the stream is closed, which cancels its producer.
    """
    items: list[T] = []
    async with _Closing(aiter(stream)) as iterator:
        if limit is not None and limit <= 0:
            return items
        async for item in iterator:
            items.append(item)
            if limit is not None and len(items) >= limit:
                break
    return items


__all__ = ["catch", "collect", "defer", "flow_on"]
