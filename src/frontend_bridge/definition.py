"""Fluent configuration of one externally hosted frontend."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import NamedTuple
from urllib.parse import urlsplit

from frontend_bridge.constants import (
    DEFAULT_FRONTEND_KEY,
    DEFAULT_READY_PATTERN,
    FRAMEWORK_API_ENV_VARS,
)
from frontend_bridge.exceptions import FrontendConfigurationError
from frontend_bridge.utils import join_url, normalize_path, split_host_port


class ChildFrontend(NamedTuple):
    """A named alias for a sub-path of its parent's URL."""

    path: str
    name: str


def validate_url(url: str) -> str:
    """Return ``url`` if it is an absolute http(s) URL with a host and valid port.

    Raises:
        FrontendConfigurationError: If the URL is invalid.
    """
    try:
        parts = urlsplit(url)
        # Accessing .port validates it.
        parts.port
    except ValueError as e:
        raise FrontendConfigurationError(f"Invalid URL: {url!r} ({e})") from e
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise FrontendConfigurationError(f"Invalid URL: {url!r}")
    return url


def validate_name(name: str | None) -> str | None:
    if name is not None and not name.strip():
        raise FrontendConfigurationError("Frontend name cannot be empty")
    return name


class FrontendDefinition:
    """Configuration for a frontend, optionally with the command that serves it.

    Every configuration method returns the same instance for chaining and has
    no side effects; nothing is spawned until ``FrontendServer.start()``.

    Example:
        >>> FrontendDefinition("http://localhost:5173").serve(
        ...     "npm run dev", cwd="../frontend"
        ... ).ready_when("VITE.*ready").env({"VITE_API_URL": "/api"})
    """

    def __init__(self, url: str, name: str | None = None):
        self._url: str = validate_url(url)
        self._name: str | None = validate_name(name)
        self._serve_command: str | None = None
        self._working_directory: str | None = None
        self._ready_pattern: str = DEFAULT_READY_PATTERN
        self._ready_timeout: float | None = None
        self._warmup_ms: int = 0
        self._env_injections: dict[str, str] = {}
        self._env_file: str | None = None
        self._children: list[ChildFrontend] = []
        self._trust_existing: bool = False

    def __repr__(self) -> str:
        return (
            f"FrontendDefinition(url={self._url!r}, name={self._name!r}, "
            f"serve_command={self._serve_command!r})"
        )

    # === Fluent configuration ===

    def serve(
        self, command: str, cwd: str | os.PathLike[str] | None = None
    ) -> FrontendDefinition:
        """Set the shell command that starts the frontend (e.g. ``npm run dev``).

        Args:
            command: The shell command to run
            cwd: The working directory for the command (default: current directory)
        """
        if not command.strip():
            raise FrontendConfigurationError("Serve command cannot be empty")
        self._serve_command = command
        self._working_directory = os.fspath(cwd) if cwd is not None else None
        return self

    def ready_when(self, pattern: str) -> FrontendDefinition:
        """Set the regex searched for in the server output.

        Matching is case-insensitive and runs against the lines captured so
        far joined with newlines, so a pattern may span lines. ``^`` and ``$``
        anchor at line boundaries.
        """
        try:
            re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            raise FrontendConfigurationError(
                f"Invalid ready pattern {pattern!r}: {e}"
            ) from e
        self._ready_pattern = pattern
        return self

    def timeout(self, seconds: float) -> FrontendDefinition:
        """Override the readiness timeout for this frontend."""
        if seconds <= 0:
            raise FrontendConfigurationError("Ready timeout must be positive")
        self._ready_timeout = float(seconds)
        return self

    def warmup(self, milliseconds: int) -> FrontendDefinition:
        """Extra delay after the ready pattern matched.

        Large frontends may need time after reporting "ready" before they
        handle page loads efficiently.
        """
        if milliseconds < 0:
            raise FrontendConfigurationError("Warmup delay cannot be negative")
        self._warmup_ms = int(milliseconds)
        return self

    def env(self, variables: Mapping[str, str]) -> FrontendDefinition:
        """Inject ``<backend test URL><suffix>`` as each named variable.

        The backend URL loses any trailing slash. A suffix that does not start
        with ``/``, ``?`` or ``#`` is treated as a path and gets a leading
        ``/``, so ``"v1"`` and ``"/v1"`` both yield ``<backend>/v1``.

        Args:
            variables: Environment variable name -> path suffix, e.g.
                ``{"VITE_API_URL": "/api"}``
        """
        for key in variables:
            if not key or "=" in key:
                raise FrontendConfigurationError(
                    f"Invalid environment variable name {key!r}"
                )
        self._env_injections.update(variables)
        return self

    def env_presets(self, suffix: str = "") -> FrontendDefinition:
        """Inject the backend URL under the API variables common frameworks read.

        Covers generic names plus Vite, Nuxt 3, Next.js and Create React App.
        """
        return self.env({name: suffix for name in FRAMEWORK_API_ENV_VARS})

    def env_file(self, path: str | os.PathLike[str]) -> FrontendDefinition:
        """Also write injected variables to ``path`` (relative to the cwd).

        For tools that prefer a .env file over the process environment.
        """
        self._env_file = os.fspath(path)
        return self

    def child(self, path: str, name: str) -> FrontendDefinition:
        """Register ``name`` as an alias for ``url + path`` sharing this server."""
        if validate_name(name) is None:
            raise FrontendConfigurationError("Child frontend requires a name")
        self._children.append(ChildFrontend(path=path, name=name))
        return self

    def trust_existing_server(self) -> FrontendDefinition:
        """Skip marker verification and use whatever already serves the URL."""
        self._trust_existing = True
        return self

    # === Accessors ===

    @property
    def url(self) -> str:
        return self._url

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def key(self) -> str:
        """Registry key: the name, or "default"."""
        return self._name if self._name is not None else DEFAULT_FRONTEND_KEY

    @property
    def serve_command(self) -> str | None:
        return self._serve_command

    @property
    def working_directory(self) -> str | None:
        return self._working_directory

    @property
    def resolved_cwd(self) -> str:
        """Canonical working directory used for spawning and marker identity."""
        return normalize_path(self._working_directory)

    @property
    def ready_pattern(self) -> str:
        return self._ready_pattern

    @property
    def ready_timeout(self) -> float | None:
        return self._ready_timeout

    @property
    def warmup_ms(self) -> int:
        return self._warmup_ms

    @property
    def env_injections(self) -> dict[str, str]:
        return dict(self._env_injections)

    @property
    def env_file_path(self) -> Path | None:
        """The env file location, resolved against the working directory."""
        if self._env_file is None:
            return None
        return Path(self.resolved_cwd) / self._env_file

    @property
    def children(self) -> tuple[ChildFrontend, ...]:
        return tuple(self._children)

    @property
    def trust_existing(self) -> bool:
        return self._trust_existing

    @property
    def host(self) -> str:
        return split_host_port(self._url)[0]

    @property
    def port(self) -> int:
        return split_host_port(self._url)[1]

    @property
    def server_key(self) -> tuple[str, str] | None:
        """(serve command, resolved cwd); definitions sharing it share a process."""
        if self._serve_command is None:
            return None
        return (self._serve_command, self.resolved_cwd)

    def has_serve_command(self) -> bool:
        return self._serve_command is not None

    def child_url(self, path: str) -> str:
        return join_url(self._url, path)
