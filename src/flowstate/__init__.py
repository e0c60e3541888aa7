"""flowstate: tagged result states and fault-safe async use case streams.

Public API:
    - ResultState, Loading, Success, Error: the three outcome shapes
    - loading(), success(), error(): state factories
    - StreamUseCase: base class for stream-producing use cases
    - Dispatchers, TaskDispatcher, ThreadLoopDispatcher: execution contexts
    - resolve_config(): configuration resolution
"""

from __future__ import annotations

import logging

from flowstate.config import FrozenConfig, resolve_config
from flowstate.dispatch import (
    Dispatcher,
    Dispatchers,
    LoopDispatcher,
    TaskDispatcher,
    ThreadLoopDispatcher,
    UnconfinedDispatcher,
    create_dispatcher,
)
from flowstate.errors import (
    ConfigurationError,
    DispatcherClosedError,
    FlowStateError,
    InvariantViolationError,
)
from flowstate.state import (
    Error,
    Loading,
    ResultState,
    Success,
    error,
    fold,
    is_error,
    is_loading,
    is_state,
    is_success,
    loading,
    success,
)
from flowstate.streams import catch, collect, defer, flow_on
from flowstate.usecase import StreamUseCase

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("flowstate")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("flowstate").addHandler(logging.NullHandler())

__all__ = [  # noqa: RUF022
    # States
    "ResultState",
    "Loading",
    "Success",
    "Error",
    "loading",
    "success",
    "error",
    "fold",
    "is_state",
    "is_loading",
    "is_success",
    "is_error",
    # Use cases
    "StreamUseCase",
    # Dispatchers
    "Dispatcher",
    "Dispatchers",
    "UnconfinedDispatcher",
    "TaskDispatcher",
    "LoopDispatcher",
    "ThreadLoopDispatcher",
    "create_dispatcher",
    # Stream operators
    "defer",
    "catch",
    "flow_on",
    "collect",
    # Configuration
    "FrozenConfig",
    "resolve_config",
    # Errors
    "FlowStateError",
    "ConfigurationError",
    "DispatcherClosedError",
    "InvariantViolationError",
]
