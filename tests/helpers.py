"""Test helpers (small, reusable doubles).

Keep this file tiny: it exists so suites don't each grow their own one-off
use case subclasses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flowstate import StreamUseCase

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from flowstate import Dispatcher, ResultState


class ScriptedUseCase(StreamUseCase[Any, Any]):
    """Use case whose ``produce`` delegates to an async generator function.

    Records every parameter it was produced with.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        body: Callable[[Any], AsyncIterator[ResultState[Any]]],
    ) -> None:
        super().__init__(dispatcher)
        self.body = body
        self.calls: list[Any] = []

    def produce(self, parameters: Any) -> AsyncIterator[ResultState[Any]]:
        self.calls.append(parameters)
        return self.body(parameters)


class Boom(Exception):
    """Marker fault raised by test producers."""
