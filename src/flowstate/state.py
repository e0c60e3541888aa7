"""Tagged result states for asynchronous operations.

A ``ResultState`` is exactly one of three immutable shapes:

- ``Loading``: the operation is in flight, no payload.
- ``Success``: the operation produced ``data``.
- ``Error``: the operation failed with ``cause``, an exception object that
  keeps its type, traceback and chaining.

States are plain values. They are built at each emission point, never
mutated, and can be shared freely between consumers.

Example:
    state = success(3).map_success(lambda n: n * 2)
    assert state == success(6)

    match state:
        case Loading():
            ...
        case Success(data=value):
            ...
        case Error(cause=exc):
            ...
"""

from __future__ import annotations

import dataclasses
import typing

from flowstate.errors import HINTS, InvariantViolationError

if typing.TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = typing.TypeVar("T")


@dataclasses.dataclass(frozen=True, slots=True)
class Loading[T]:
    """The operation is in flight."""

    def map_success[U](self, transform: Callable[[T], U]) -> Loading[U]:
        """Return a new ``Loading``; ``transform`` is not invoked."""
        return Loading()

    async def map_success_async[U](
        self, transform: Callable[[T], Awaitable[U]]
    ) -> Loading[U]:
        """Return a new ``Loading``; nothing is awaited."""
        return Loading()


@dataclasses.dataclass(frozen=True, slots=True)
class Success[T]:
    """The operation produced a value."""

    data: T

    def map_success[U](self, transform: Callable[[T], U]) -> Success[U]:
        """Wrap ``transform(data)`` in a new ``Success``.

        Exceptions raised by ``transform`` propagate to the caller.
        """
        return Success(transform(self.data))

    async def map_success_async[U](
        self, transform: Callable[[T], Awaitable[U]]
    ) -> Success[U]:
        """Await ``transform(data)`` and wrap the result in a new ``Success``."""
        return Success(await transform(self.data))


@dataclasses.dataclass(frozen=True, slots=True)
class Error[T]:
    """The operation failed."""

    cause: BaseException

    def map_success[U](self, transform: Callable[[T], U]) -> Error[U]:
        """Return a new ``Error`` carrying the same cause."""
        return Error(self.cause)

    async def map_success_async[U](
        self, transform: Callable[[T], Awaitable[U]]
    ) -> Error[U]:
        """Return a new ``Error`` carrying the same cause; nothing is awaited."""
        return Error(self.cause)


ResultState = Loading[T] | Success[T] | Error[T]

_VARIANTS = (Loading, Success, Error)


# --- Factories ---


def loading() -> Loading[typing.Any]:
    """Return a ``Loading`` instance."""
    return Loading()


def success[V](data: V) -> Success[V]:
    """Return a ``Success`` wrapping ``data``.

    Args:
        data: Value to emit with the state. Not validated.
    """
    return Success(data)


def error(cause: BaseException) -> Error[typing.Any]:
    """Return an ``Error`` wrapping ``cause``.

    Args:
        cause: Description of the failure.
    """
    return Error(cause)


# --- Inspection ---


def is_state(value: object) -> bool:
    """Return True if ``value`` is one of the three state shapes."""
    return isinstance(value, _VARIANTS)


def is_loading(state: ResultState[T]) -> typing.TypeGuard[Loading[T]]:
    return isinstance(state, Loading)


def is_success(state: ResultState[T]) -> typing.TypeGuard[Success[T]]:
    return isinstance(state, Success)


def is_error(state: ResultState[T]) -> typing.TypeGuard[Error[T]]:
    return isinstance(state, Error)


def fold[S, V](
    state: ResultState[S],
    *,
    on_loading: Callable[[], V],
    on_success: Callable[[S], V],
    on_error: Callable[[BaseException], V],
) -> V:
    """Collapse a state into a single value, one callback per shape.

    Raises:
        InvariantViolationError: If ``state`` is not a ``ResultState``.
    """
    match state:
        case Loading():
            return on_loading()
        case Success(data=data):
            return on_success(data)
        case Error(cause=cause):
            return on_error(cause)
        case _:
            raise InvariantViolationError(
                f"Expected Loading, Success or Error, got {type(state).__name__}",
                stage_name="fold",
                hint=HINTS["not_a_state"],
            )


__all__ = [
    "Error",
    "Loading",
    "ResultState",
    "Success",
    "error",
    "fold",
    "is_error",
    "is_loading",
    "is_state",
    "is_success",
    "loading",
    "success",
]
