"""Exception hierarchy for frontend-bridge.

Every failure of ``FrontendServer.start()`` is one of the specific classes
below; callers never need to interpret process or I/O errors themselves.

Exception Hierarchy:
    BridgeError (base)
    ├── FrontendConfigurationError (also ValueError)
    │   └── FrontendNotConfiguredError (also LookupError)
    ├── MarkerIOError (marker file could not be read/written)
    └── FrontendStartError (start() failures)
        ├── PortConflictError
        │   ├── DifferentApplicationError (marker cwd mismatch)
        │   └── UnknownProcessError (port answers, no marker)
        ├── SpawnError (command could not be launched)
        ├── ReadinessTimeoutError (ready pattern never matched)
        ├── ProcessExitedError (process exited before ready)
        └── HttpVerificationError (pattern matched, HTTP never answered)
"""

from __future__ import annotations

from pathlib import Path


class BridgeError(Exception):
    """Base exception for all frontend-bridge errors."""


class FrontendConfigurationError(BridgeError, ValueError):
    """Invalid frontend configuration (URL, name, pattern, missing backend URL)."""


class FrontendNotConfiguredError(FrontendConfigurationError, LookupError):
    """A frontend name was resolved that was never registered."""

    def __init__(self, name: str | None) -> None:
        self.name = name
        if name is None:
            message = (
                "Default frontend not configured. Call bridge.add(url) from a "
                "pytest_frontend_bridge_setup hook or set FRONTEND_BRIDGE_URL."
            )
        else:
            message = (
                f"Frontend '{name}' not configured. Call "
                f"bridge.add(url, name='{name}') from a pytest_frontend_bridge_setup hook."
            )
        super().__init__(message)


class MarkerIOError(BridgeError):
    """A port marker could not be persisted or read.

    Conflict detection is unreliable without markers, so this is never
    downgraded to a warning.
    """

    def __init__(self, port: int, path: Path, action: str, details: OSError) -> None:
        self.port = port
        self.path = path
        self.details = details
        super().__init__(
            f"Could not persist ownership of port {port}: failed to {action} "
            f"marker file {path}: {details}"
        )
        self.add_note(f"Original error: {type(details).__name__}: {details}")


class FrontendStartError(BridgeError):
    """Base class for errors raised by ``FrontendServer.start()``."""

    def __init__(self, message: str, *, port: int | None = None, url: str | None = None):
        self.port = port
        self.url = url
        super().__init__(message)


class PortConflictError(FrontendStartError):
    """The target port is owned by something other than this frontend."""


class DifferentApplicationError(PortConflictError):
    """A marker shows the port belongs to a different working directory."""

    def __init__(self, port: int, url: str, conflicting_cwd: str, expected_cwd: str):
        self.conflicting_cwd = conflicting_cwd
        self.expected_cwd = expected_cwd
        message = f"""Port {port} is already used by a different application.

The frontend at {url} expects to run from:
  {expected_cwd}

but port {port} was claimed by a frontend started from:
  {conflicting_cwd}

Options:
  1. Stop the other application (its test run may still be active).
  2. Use a different port for this frontend:
     bridge.add("http://localhost:XXXX")"""
        super().__init__(message, port=port, url=url)


class UnknownProcessError(PortConflictError):
    """Something answers on the port but no marker identifies it."""

    def __init__(self, port: int, url: str, status: int | None = None):
        self.status = status
        answered = f" (answered with HTTP {status})" if status else ""
        message = f"""Port {port} is already in use by an unknown process{answered}.

The frontend at {url} cannot start because the port is occupied and no
frontend-bridge marker identifies the owner.

Options:
  1. Find and stop the process using port {port}:
     lsof -ti:{port} | xargs kill
  2. Use a different port:
     bridge.add("http://localhost:XXXX")
  3. If you started this server yourself, reuse it:
     bridge.add("{url}").trust_existing_server()"""
        super().__init__(message, port=port, url=url)


class SpawnError(FrontendStartError):
    """The serve command could not be launched."""

    def __init__(self, command: str, cwd: str, details: OSError, *, port: int, url: str):
        self.command = command
        self.cwd = cwd
        self.details = details
        super().__init__(
            f"Could not launch frontend command '{command}' in {cwd}: {details}",
            port=port,
            url=url,
        )


class ReadinessTimeoutError(FrontendStartError):
    """The ready pattern never matched within the timeout."""

    def __init__(
        self,
        command: str,
        pattern: str,
        timeout: float,
        output_tail: str,
        *,
        port: int,
        url: str,
    ):
        self.command = command
        self.pattern = pattern
        self.timeout = timeout
        self.output_tail = output_tail
        message = (
            f"Frontend '{command}' did not become ready within {timeout:g}s.\n"
            f"Expected output matching /{pattern}/i.\n"
            f"Last output:\n{output_tail or '  (no output)'}\n"
            "Adjust the pattern with .ready_when(...) or the timeout with .timeout(...)."
        )
        super().__init__(message, port=port, url=url)


class ProcessExitedError(FrontendStartError):
    """The process exited before reporting readiness."""

    def __init__(
        self,
        command: str,
        returncode: int | None,
        output_tail: str,
        *,
        port: int,
        url: str,
    ):
        self.command = command
        self.returncode = returncode
        self.output_tail = output_tail
        message = (
            f"Frontend '{command}' exited unexpectedly with code {returncode} "
            f"before it was ready.\n"
            f"Last output:\n{output_tail or '  (no output)'}"
        )
        super().__init__(message, port=port, url=url)


class HttpVerificationError(FrontendStartError):
    """The ready pattern matched but the URL never answered HTTP."""

    def __init__(self, url: str, attempts: int, last_status: int, *, port: int):
        self.attempts = attempts
        self.last_status = last_status
        message = (
            f"Frontend at {url} reported ready in its output but did not answer "
            f"HTTP after {attempts} attempt(s) (last status: "
            f"{last_status or 'no response'}).\n"
            "Check that the dev server listens on the configured host and port."
        )
        super().__init__(message, port=port, url=url)
