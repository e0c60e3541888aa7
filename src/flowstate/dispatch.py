"""Execution contexts that stream production can be redirected onto.

A dispatcher is an opaque scheduling target. Use cases hold one and never
look at what it is backed by. The library ships:

- ``UnconfinedDispatcher``: no redirection; production runs inline in the
  consumer's task.
- ``TaskDispatcher``: production runs in its own task on the consumer's loop.
- ``LoopDispatcher``: production runs on another, already running loop.
- ``ThreadLoopDispatcher``: a ``LoopDispatcher`` that owns a background
  thread and its event loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any, Final, Self

from flowstate.errors import HINTS, ConfigurationError, DispatcherClosedError

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from types import TracebackType

    from flowstate.config import FrozenConfig

log = logging.getLogger(__name__)

DEFAULT_CAPACITY: Final[int] = 64


class Dispatcher(ABC):
    """Scheduling target for stream production.

    Attributes:
        capacity: Number of items a redirected producer may run ahead of its
            consumer before it suspends.
    """

    def __init__(self, *, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ConfigurationError(
                f"capacity must be >= 1, got {capacity}",
                hint=HINTS["invalid_capacity"],
            )
        self.capacity = capacity

    def is_dispatch_needed(self) -> bool:
        """Return False when production should run inline in the consumer."""
        return True

    @abstractmethod
    def submit[T](self, coro: Coroutine[Any, Any, T]) -> asyncio.Future[T]:
        """Schedule ``coro`` on this context.

        Must be called from a running event loop. The returned future belongs
        to that loop; cancelling it cancels the scheduled work.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(capacity={self.capacity})"


class UnconfinedDispatcher(Dispatcher):
    """Run production in whatever task consumes the stream."""

    def is_dispatch_needed(self) -> bool:
        return False

    def submit[T](self, coro: Coroutine[Any, Any, T]) -> asyncio.Future[T]:
        return asyncio.ensure_future(coro)


class TaskDispatcher(Dispatcher):
    """Run production in a separate task on the caller's event loop."""

    def __init__(
        self, *, capacity: int = DEFAULT_CAPACITY, name: str | None = None
    ) -> None:
        super().__init__(capacity=capacity)
        self.name = name

    def submit[T](self, coro: Coroutine[Any, Any, T]) -> asyncio.Future[T]:
        return asyncio.get_running_loop().create_task(coro, name=self.name)


class LoopDispatcher(Dispatcher):
    """Run production on a specific event loop, usually in another thread."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        *,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        super().__init__(capacity=capacity)
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    def _target_loop(self) -> asyncio.AbstractEventLoop:
        loop = self._loop
        if loop is None or loop.is_closed():
            raise DispatcherClosedError(
                f"{self!r} has no open event loop", hint=HINTS["dispatcher_closed"]
            )
        if not loop.is_running():
            raise DispatcherClosedError(
                f"{self!r} targets a loop that is not running",
                hint=HINTS["loop_not_running"],
            )
        return loop

    def submit[T](self, coro: Coroutine[Any, Any, T]) -> asyncio.Future[T]:
        try:
            target = self._target_loop()
        except DispatcherClosedError:
            # Never scheduled; close it so no "never awaited" warning fires.
            coro.close()
            raise
        caller = asyncio.get_running_loop()
        if target is caller:
            return caller.create_task(coro)
        return asyncio.wrap_future(
            asyncio.run_coroutine_threadsafe(coro, target), loop=caller
        )


class ThreadLoopDispatcher(LoopDispatcher):
    """Own a daemon thread running a private event loop.

    The thread starts on first use (or on ``start()``) and stops on
    ``close()``. Work still running on the loop at close time is cancelled.

    Example:
        with ThreadLoopDispatcher("db-worker") as io:
            async for state in LoadOrders(io)(user_id):
                ...
    """

    def __init__(
        self,
        name: str = "flowstate-worker",
        *,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        super().__init__(None, capacity=capacity)
        self.name = name
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> Self:
        """Start the worker thread if it is not running yet."""
        with self._lock:
            if self._closed:
                raise DispatcherClosedError(
                    f"{self!r} is closed", hint=HINTS["dispatcher_closed"]
                )
            if self._thread is not None:
                return self
            loop = asyncio.new_event_loop()
            started = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(loop, started), name=self.name, daemon=True
            )
            thread.start()
            started.wait()
            self._loop = loop
            self._thread = thread
        log.debug("Started dispatcher thread %s", self.name)
        return self

    def _run(self, loop: asyncio.AbstractEventLoop, started: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(started.set)
        try:
            loop.run_forever()
        finally:
            try:
                _cancel_remaining_tasks(loop)
                loop.run_until_complete(loop.shutdown_asyncgens())
                loop.run_until_complete(loop.shutdown_default_executor())
            finally:
                asyncio.set_event_loop(None)
                loop.close()

    def close(self, timeout: float | None = None) -> None:
        """Stop the loop, cancel leftover work and join the thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            loop, thread = self._loop, self._thread
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        log.debug("Stopped dispatcher thread %s", self.name)

    def submit[T](self, coro: Coroutine[Any, Any, T]) -> asyncio.Future[T]:
        if self._closed:
            coro.close()
            raise DispatcherClosedError(
                f"{self!r} is closed", hint=HINTS["dispatcher_closed"]
            )
        if self._thread is None:
            self.start()
        return super().submit(coro)

    def __enter__(self) -> Self:
        return self.start()

    def __exit__(
        self,
        _: type[BaseException] | None,
        __: BaseException | None,
        ___: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ThreadLoopDispatcher(name={self.name!r}, capacity={self.capacity})"


def _cancel_remaining_tasks(loop: asyncio.AbstractEventLoop) -> None:
    tasks = [t for t in asyncio.all_tasks(loop) if not t.done()]
    if not tasks:
        return
    log.debug("Cancelling %d task(s) left on a closing loop", len(tasks))
    for task in tasks:
        task.cancel()
    loop.run_until_complete(asyncio.gather(*tasks, return_exceptions=True))


class Dispatchers:
    """Shared dispatcher instances."""

    UNCONFINED: Final[Dispatcher] = UnconfinedDispatcher()
    DEFAULT: Final[Dispatcher] = TaskDispatcher()


def create_dispatcher(config: FrozenConfig | None = None) -> Dispatcher:
    """Build the dispatcher named by ``config`` (resolved when omitted).

    Thread dispatchers are returned unstarted; the caller owns ``close()``.
    """
    if config is None:
        from flowstate.config import resolve_config

        config = resolve_config()

    match config.dispatcher:
        case "unconfined":
            return UnconfinedDispatcher(capacity=config.channel_capacity)
        case "task":
            return TaskDispatcher(capacity=config.channel_capacity)
        case "thread":
            return ThreadLoopDispatcher(
                config.thread_name, capacity=config.channel_capacity
            )
        case other:
            raise ConfigurationError(
                f"Unknown dispatcher: {other!r}", hint=HINTS["unknown_dispatcher"]
            )


__all__ = [
    "DEFAULT_CAPACITY",
    "Dispatcher",
    "Dispatchers",
    "LoopDispatcher",
    "TaskDispatcher",
    "ThreadLoopDispatcher",
    "UnconfinedDispatcher",
    "create_dispatcher",
]
