"""StreamUseCase surface: construction, invocation aliases and fault handling."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pytest

from flowstate import Dispatchers, StreamUseCase, collect, error, loading, success
from tests.helpers import Boom, ScriptedUseCase

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from flowstate import ResultState

pytestmark = pytest.mark.unit


async def _two_states(_: Any) -> AsyncIterator[ResultState[int]]:
    yield loading()
    yield success(2)


def test_use_case_is_abstract() -> None:
    with pytest.raises(TypeError):
        StreamUseCase(Dispatchers.DEFAULT)  # type: ignore[abstract]


def test_use_case_keeps_its_dispatcher() -> None:
    use_case = ScriptedUseCase(Dispatchers.UNCONFINED, _two_states)

    assert use_case.dispatcher is Dispatchers.UNCONFINED


@pytest.mark.asyncio
async def test_call_and_invoke_are_the_same_stream() -> None:
    use_case = ScriptedUseCase(Dispatchers.DEFAULT, _two_states)

    assert await collect(use_case(1)) == await collect(use_case.invoke(1))
    assert use_case.calls == [1, 1]


@pytest.mark.asyncio
async def test_each_invocation_is_independent() -> None:
    async def echo(value: str) -> AsyncIterator[ResultState[str]]:
        yield success(value)

    use_case = ScriptedUseCase(Dispatchers.DEFAULT, echo)

    assert await collect(use_case("a")) == [success("a")]
    assert await collect(use_case("b")) == [success("b")]


@pytest.mark.asyncio
async def test_intercepted_fault_is_returned_without_logging(
    caplog: pytest.LogCaptureFixture,
) -> None:
    fault = Boom("disk full")

    async def failing(_: Any) -> AsyncIterator[ResultState[int]]:
        yield loading()
        raise fault

    with caplog.at_level(logging.DEBUG, logger="flowstate"):
        states = await collect(
            ScriptedUseCase(Dispatchers.UNCONFINED, failing)(None)
        )

    assert states == [loading(), error(fault)]
    assert [r for r in caplog.records if r.name == "flowstate.usecase"] == []
    assert not any(r.exc_info for r in caplog.records)
