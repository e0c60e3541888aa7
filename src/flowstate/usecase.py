"""Base class for use cases that report their progress as a stream of states."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from flowstate.state import error
from flowstate.streams import catch, defer, flow_on

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

    from flowstate.dispatch import Dispatcher
    from flowstate.state import ResultState


class StreamUseCase[P, R](ABC):
    """Run domain logic that emits ``ResultState`` values over time.

    Subclasses implement ``produce``. Callers use ``invoke`` (or call the
    instance), which adds two guarantees on top of ``produce``:

    1. Any fault raised while producing ends the stream with a
       single ``Error(fault)`` instead of propagating to the consumer.
       ``Error`` states that ``produce`` emits on purpose pass through as-is.
    2. ``produce`` runs on the dispatcher given at construction, not in the
       caller's context. Items reach the consumer in emission order.

    Cancellation is never turned into an ``Error``: closing or cancelling the
    consumer cancels ``produce`` at its current await point. Interpreter exit
    signals (``KeyboardInterrupt``, ``SystemExit``) also propagate as-is.

    Example:
        class LoadProfile(StreamUseCase[str, Profile]):
            async def produce(self, user_id):
                yield loading()
                yield success(await self.repo.fetch(user_id))

        async for state in LoadProfile(Dispatchers.DEFAULT)("u-1"):
            render(state)
    """

    def __init__(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @abstractmethod
    def produce(self, parameters: P) -> AsyncIterable[ResultState[R]]:
        """Emit the states of one run of the use case.

        Usually written as an async generator. May run forever.
        """

    def invoke(self, parameters: P) -> AsyncIterator[ResultState[R]]:
        """Return the guarded stream for one run with ``parameters``.

        Nothing runs until the stream is iterated.
        """
        guarded = catch(defer(lambda: self.produce(parameters)), error)
        return flow_on(guarded, self._dispatcher)

    def __call__(self, parameters: P) -> AsyncIterator[ResultState[R]]:
        return self.invoke(parameters)


__all__ = ["StreamUseCase"]
