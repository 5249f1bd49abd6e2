"""Centralized Pydantic models, enums, and type aliases for frontend-bridge."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Mapping
from enum import Enum
from pathlib import Path
from typing import ClassVar, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator

from frontend_bridge.constants import (
    DEFAULT_CI_READY_TIMEOUT,
    DEFAULT_HTTP_VERIFY_ATTEMPTS,
    DEFAULT_HTTP_VERIFY_INTERVAL,
    DEFAULT_OUTPUT_TAIL_LINES,
    DEFAULT_PORT_PROBE_TIMEOUT,
    DEFAULT_READY_TIMEOUT,
    DEFAULT_STOP_TIMEOUT,
    ENV_BACKEND_URL,
    ENV_DEFAULT_URL,
    ENV_MARKER_DIR,
    ENV_READY_TIMEOUT,
)
from frontend_bridge.utils import is_ci


# === Type Aliases ===

ProbeMethod = Literal["HEAD", "GET"]

# Either a fixed base URL or a callable evaluated right before spawn, which
# lets the backend test server pick its port lazily.
BackendUrl: TypeAlias = str | Callable[[], str]


# === Enums ===


class MarkerStatus(str, Enum):
    """Outcome of verifying a port marker against a working directory."""

    NONE = "none"
    MATCH = "match"
    MISMATCH = "mismatch"
    STALE = "stale"


class ServerState(str, Enum):
    """Lifecycle state of a FrontendServer."""

    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    STOPPED = "stopped"


# === Records ===


class MarkerRecord(BaseModel):
    """Port ownership record persisted as JSON, one file per port."""

    port: int
    cwd: str
    command: str
    pid: int
    started_at: int

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")


class ProbeRequest(BaseModel):
    """A request recorded by FakeProbe."""

    method: ProbeMethod
    url: str
    timeout: float

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


# === Settings ===


class BridgeSettings(BaseModel):
    """Runtime configuration shared by the registry and its servers.

    This is the single source of truth for timeouts and locations. Values come
    from defaults, then ``FRONTEND_BRIDGE_*`` environment variables, then
    pytest options.
    """

    marker_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    ready_timeout: float = DEFAULT_READY_TIMEOUT
    http_verify_attempts: int = DEFAULT_HTTP_VERIFY_ATTEMPTS
    http_verify_interval: float = DEFAULT_HTTP_VERIFY_INTERVAL
    port_probe_timeout: float = DEFAULT_PORT_PROBE_TIMEOUT
    stop_timeout: float = DEFAULT_STOP_TIMEOUT
    output_tail_lines: int = DEFAULT_OUTPUT_TAIL_LINES
    backend_url: str | None = None
    default_url: str | None = None

    @field_validator("ready_timeout", "port_probe_timeout", "stop_timeout")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    @field_validator("http_verify_attempts", "output_tail_lines")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeSettings:
        """Build settings from ``FRONTEND_BRIDGE_*`` variables.

        The readiness timeout defaults to the longer CI value when a CI
        platform is detected.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {
            "ready_timeout": DEFAULT_CI_READY_TIMEOUT
            if is_ci(env)
            else DEFAULT_READY_TIMEOUT,
        }
        if env.get(ENV_MARKER_DIR):
            values["marker_dir"] = Path(env[ENV_MARKER_DIR])
        if env.get(ENV_READY_TIMEOUT):
            values["ready_timeout"] = float(env[ENV_READY_TIMEOUT])
        if env.get(ENV_BACKEND_URL):
            values["backend_url"] = env[ENV_BACKEND_URL]
        if env.get(ENV_DEFAULT_URL):
            values["default_url"] = env[ENV_DEFAULT_URL]
        return cls.model_validate(values)
