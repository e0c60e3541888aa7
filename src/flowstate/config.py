"""Configuration schema and resolution for flowstate.

Resolve-once, freeze-then-flow: configuration is validated by a pydantic
``Settings`` schema and handed to the rest of the library as an immutable
``FrozenConfig``. Precedence is defaults < environment (``FLOWSTATE_*``) <
programmatic overrides.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import cache
import logging
import os
from typing import TYPE_CHECKING, Any, Literal, overload

from pydantic import BaseModel, Field, ValidationError, field_validator

from flowstate.errors import HINTS, ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

ENV_PREFIX = "FLOWSTATE_"

DispatcherName = Literal["unconfined", "task", "thread"]

# --- Schema (Pydantic wall) ---


class Settings(BaseModel):
    """Pydantic schema for configuration validation and defaults."""

    # Which dispatcher create_dispatcher() builds
    dispatcher: DispatcherName = Field(default="task")
    # Items buffered between a redirected producer and its consumer
    channel_capacity: int = Field(default=64, ge=1)
    thread_name: str = Field(default="flowstate-worker", min_length=1)

    model_config = {"extra": "forbid"}

    @field_validator("dispatcher", mode="before")
    @classmethod
    def normalize_dispatcher(cls, v: Any) -> Any:
        """Accept dispatcher names in any case, with surrounding whitespace."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("thread_name", mode="before")
    @classmethod
    def normalize_thread_name(cls, v: Any) -> Any:
        """Trim surrounding whitespace on thread names."""
        if isinstance(v, str):
            return v.strip()
        return v


@cache
def _default_settings() -> dict[str, Any]:
    return Settings().model_dump()


# --- Immutable runtime payload ---


@dataclass(frozen=True)
class FrozenConfig:
    """Validated, immutable configuration."""

    dispatcher: DispatcherName
    channel_capacity: int
    thread_name: str


# --- Audit types ---


class Origin(str, Enum):
    """Source origin for configuration field values."""

    DEFAULT = "default"
    ENV = "env"
    OVERRIDES = "overrides"


@dataclass(frozen=True)
class FieldOrigin:
    """Tracks where a configuration field value came from."""

    origin: Origin
    env_key: str | None = None  # e.g., "FLOWSTATE_DISPATCHER"


SourceMap = dict[str, FieldOrigin]

_DOTENV_LOADED: bool = False


def _try_load_dotenv() -> None:
    """Load a ``.env`` found from the working directory, once per process.

    Variables already present in the environment win over the file.
    """
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    _DOTENV_LOADED = True
    try:
        from dotenv import find_dotenv, load_dotenv

        load_dotenv(find_dotenv(usecwd=True))
    except Exception:
        log.debug("Skipping .env loading", exc_info=True)


# --- Loaders ---


def _coerce_env_value(value: str, target_type: Any) -> Any:
    """Coerce an env string to int when the schema expects one."""
    if target_type is int:
        try:
            return int(value)
        except ValueError:
            return value
    return value


def load_env() -> dict[str, Any]:
    """Read ``FLOWSTATE_*`` variables that name known schema fields.

    Unknown ``FLOWSTATE_*`` names are ignored so that unrelated tooling
    variables never break resolution.
    """
    config: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        info = Settings.model_fields.get(field_name)
        if info is None:
            continue
        config[field_name] = _coerce_env_value(value, info.annotation)
    return config


# --- Public resolution API ---


@overload
def resolve_config(
    overrides: Mapping[str, Any] | None = ...,
    *,
    explain: Literal[True],
) -> tuple[FrozenConfig, SourceMap]: ...


@overload
def resolve_config(
    overrides: Mapping[str, Any] | None = ...,
    *,
    explain: Literal[False] = ...,
) -> FrozenConfig: ...


def resolve_config(
    overrides: Mapping[str, Any] | None = None,
    *,
    explain: bool = False,
) -> FrozenConfig | tuple[FrozenConfig, SourceMap]:
    """Resolve configuration from defaults, environment and overrides.

    Args:
        overrides: Programmatic configuration overrides.
        explain: If True, also return the ``SourceMap`` audit.

    Returns:
        FrozenConfig, or ``(FrozenConfig, SourceMap)`` if ``explain=True``.

    Raises:
        ConfigurationError: If configuration validation fails.
    """
    _try_load_dotenv()

    merged, sources = _resolve_layers(env=load_env(), overrides=overrides or {})

    try:
        settings = Settings.model_validate(merged)
    except ValidationError as e:
        err = e.errors()[0]
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = err.get("msg") or "invalid value"
        if msg.startswith("Value error, "):
            msg = msg[13:]
        hint = HINTS["unknown_dispatcher"] if loc == "dispatcher" else None
        raise ConfigurationError(
            f"Configuration validation failed for '{loc}': {msg}", hint=hint
        ) from e

    frozen = FrozenConfig(
        dispatcher=settings.dispatcher,
        channel_capacity=settings.channel_capacity,
        thread_name=settings.thread_name,
    )
    log.debug("Resolved %s", frozen)
    return (frozen, sources) if explain else frozen


def _resolve_layers(
    *,
    env: Mapping[str, Any],
    overrides: Mapping[str, Any],
) -> tuple[dict[str, Any], SourceMap]:
    """Merge layers with last-wins precedence, recording each field's origin."""
    out: dict[str, Any] = {}
    src: SourceMap = {}

    for k, v in _default_settings().items():
        out[k] = v
        src[k] = FieldOrigin(origin=Origin.DEFAULT)

    for k, v in env.items():
        out[k] = v
        src[k] = FieldOrigin(origin=Origin.ENV, env_key=f"{ENV_PREFIX}{k.upper()}")

    for k, v in overrides.items():
        out[k] = v
        src[k] = FieldOrigin(origin=Origin.OVERRIDES)

    return out, src


def audit_lines(sources: SourceMap) -> list[str]:
    """Produce one human-readable ``field: origin`` line per known field."""
    lines: list[str] = []
    for field in Settings.model_fields:
        fo = sources.get(field)
        if fo is None:
            continue
        label = f"env:{fo.env_key}" if fo.origin is Origin.ENV else fo.origin.value
        lines.append(f"{field}: {label}")
    return lines


__all__ = [
    "ENV_PREFIX",
    "DispatcherName",
    "FieldOrigin",
    "FrozenConfig",
    "Origin",
    "Settings",
    "SourceMap",
    "audit_lines",
    "load_env",
    "resolve_config",
]
