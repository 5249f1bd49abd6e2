"""Lifecycle of one frontend dev server process.

``FrontendServer.start()`` is the only place where probe, process and marker
failures are converted into the errors in ``frontend_bridge.exceptions``.
"""

from __future__ import annotations

import os
import re
import time
from collections import deque
from pathlib import Path

from dotenv import set_key
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from frontend_bridge.constants import DEFAULT_HTTP_GET_TIMEOUT
from frontend_bridge.definition import FrontendDefinition
from frontend_bridge.exceptions import (
    DifferentApplicationError,
    FrontendConfigurationError,
    HttpVerificationError,
    MarkerIOError,
    ProcessExitedError,
    ReadinessTimeoutError,
    SpawnError,
    UnknownProcessError,
)
from frontend_bridge.logging import BridgeLogComponent, get_logger, log_retry_attempt
from frontend_bridge.markers import PortMarker
from frontend_bridge.models import BackendUrl, BridgeSettings, MarkerStatus, ServerState
from frontend_bridge.probe import HttpxProbe, ProcessProbe
from frontend_bridge.spawner import ProcessSpawner, SpawnedProcess, SubprocessSpawner
from frontend_bridge.utils import format_elapsed_ms


logger = get_logger(BridgeLogComponent.SERVER)
output_logger = get_logger(BridgeLogComponent.OUTPUT)

# How long a single wait for output may block before re-checking the process.
_OUTPUT_POLL_INTERVAL = 0.1
_READY_BUFFER_LINES = 200


def _no_response(status: int) -> bool:
    return status == 0


def _last_status(retry_state: RetryCallState) -> int:
    if retry_state.outcome is None:
        return 0
    return retry_state.outcome.result()


class FrontendServer:
    """Owns at most one spawned process for one FrontendDefinition.

    State machine::

        NOT_STARTED -> STARTING -> READY
                          |
                          +-> FAILED   (start() may be called again)
        any state --stop()--> STOPPED

    A server that found a live marker for its own working directory attaches
    to that process instead of spawning; it never terminates a process it
    did not start.
    """

    def __init__(
        self,
        definition: FrontendDefinition,
        *,
        probe: ProcessProbe | None = None,
        spawner: ProcessSpawner | None = None,
        markers: PortMarker | None = None,
        settings: BridgeSettings | None = None,
        backend_url: BackendUrl | None = None,
    ):
        self.definition: FrontendDefinition = definition
        self.settings: BridgeSettings = settings or BridgeSettings()
        self.probe: ProcessProbe = probe or HttpxProbe()
        self.markers: PortMarker = markers or PortMarker(self.settings.marker_dir)
        self.spawner: ProcessSpawner = spawner or SubprocessSpawner(
            name=definition.key,
            on_line=self._log_output,
            tail_lines=self.settings.output_tail_lines,
        )
        self.backend_url: BackendUrl | None = (
            backend_url if backend_url is not None else self.settings.backend_url
        )
        self._state: ServerState = ServerState.NOT_STARTED
        self._process: SpawnedProcess | None = None
        self._attached_pid: int | None = None

    def __repr__(self) -> str:
        return f"FrontendServer({self.definition.url!r}, state={self._state.value})"

    # === Introspection ===

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def owns_process(self) -> bool:
        """True if this server spawned the process it is bound to."""
        return self._process is not None

    @property
    def attached(self) -> bool:
        """True if a sibling's live process serves this frontend."""
        return self._attached_pid is not None

    @property
    def pid(self) -> int | None:
        if self._process is not None:
            return self._process.pid
        return self._attached_pid

    def is_running(self) -> bool:
        if self._state is not ServerState.READY:
            return False
        if self._process is not None:
            return self._process.poll() is None
        return True

    def output_tail(self) -> str:
        if self._process is None:
            return ""
        return "\n".join(self._process.output_tail(self.settings.output_tail_lines))

    # === Lifecycle ===

    def start(self) -> None:
        """Bring the frontend to READY, spawning its serve command if needed.

        No-op when already READY. Blocks until the server is ready or one of
        the FrontendStartError subclasses is raised.

        Raises:
            DifferentApplicationError: The port's marker belongs to another cwd.
            UnknownProcessError: Something unidentified answers on the port.
            SpawnError: The command could not be launched.
            ReadinessTimeoutError: The ready pattern never matched.
            ProcessExitedError: The process exited before it was ready.
            HttpVerificationError: Output looked ready but HTTP never answered.
            MarkerIOError: The ownership marker could not be written.
            FrontendConfigurationError: Env injection without a backend URL.
        """
        if self._state is ServerState.READY:
            return

        definition = self.definition
        self._state = ServerState.STARTING
        start_time = time.perf_counter()
        try:
            if definition.trust_existing:
                logger.info(f"Trusting existing server at {definition.url}")
                self._verify_http()
            elif definition.serve_command is not None:
                self._start_managed(definition.serve_command)
            self._state = ServerState.READY
        except Exception:
            self._state = ServerState.FAILED
            raise
        logger.info(
            f"Frontend '{definition.key}' ready at {definition.url} "
            f"({format_elapsed_ms(start_time)})"
        )

    def stop(self) -> None:
        """Terminate the owned process and remove its marker. Never raises."""
        if self._state in (ServerState.NOT_STARTED, ServerState.STOPPED):
            return

        process = self._process
        self._process = None
        self._attached_pid = None
        self._state = ServerState.STOPPED
        if process is None:
            return

        port = self.definition.port
        try:
            if not process.stop(self.settings.stop_timeout):
                logger.warning(
                    f"Frontend '{self.definition.key}' (pid {process.pid}) did not "
                    "exit after SIGKILL; it may linger as a zombie"
                )
        except Exception as e:
            logger.error(f"Failed to stop frontend '{self.definition.key}': {e}")
        # Marker cleanup must happen even if the process proved hard to kill.
        try:
            self.markers.delete(port)
        except MarkerIOError as e:
            logger.error(str(e))
        logger.info(f"Stopped frontend '{self.definition.key}' on port {port}")

    # === Start protocol ===

    def _start_managed(self, command: str) -> None:
        definition = self.definition
        port = definition.port
        cwd = definition.resolved_cwd

        status = self.markers.verify(port, cwd)
        logger.debug(f"Marker verification for port {port}: {status.value}")
        if status is MarkerStatus.MATCH:
            marker = self.markers.read(port)
            self._attached_pid = marker.pid if marker is not None else None
            logger.info(
                f"Reusing frontend already running on port {port} "
                f"(pid {self._attached_pid})"
            )
            return
        if status is MarkerStatus.MISMATCH:
            raise DifferentApplicationError(
                port,
                definition.url,
                conflicting_cwd=self.markers.marker_cwd(port) or "(unknown)",
                expected_cwd=cwd,
            )

        # NONE or STALE: refuse to start next to an unidentified listener.
        occupied = self.probe.check(
            definition.url, timeout=self.settings.port_probe_timeout
        )
        if occupied:
            raise UnknownProcessError(port, definition.url, occupied)

        env = self._build_environment()
        process = self._spawn(command, cwd, env)
        try:
            self._wait_until_ready(process)
            if definition.warmup_ms:
                logger.debug(f"Warming up for {definition.warmup_ms}ms")
                time.sleep(definition.warmup_ms / 1000)
            self._verify_http()
            self._prime()
            self.markers.write(port, cwd, command, process.pid)
        except BaseException:
            self._discard(process)
            raise
        process.release_output()
        self._process = process

    def _build_environment(self) -> dict[str, str]:
        env = dict(os.environ)
        injections = self.definition.env_injections
        if not injections:
            return env

        backend_url = self._resolve_backend_url()
        injected: dict[str, str] = {}
        for key, suffix in injections.items():
            if suffix and suffix[0] not in "/?#":
                suffix = f"/{suffix}"
            injected[key] = backend_url + suffix
        env.update(injected)

        env_file = self.definition.env_file_path
        if env_file is not None:
            self._write_env_file(env_file, injected)
        return env

    def _resolve_backend_url(self) -> str:
        backend_url = self.backend_url
        if callable(backend_url):
            backend_url = backend_url()
        if not backend_url:
            raise FrontendConfigurationError(
                f"Frontend '{self.definition.key}' injects environment variables "
                "but no backend URL is configured. Call bridge.set_backend_url(...) "
                "or set FRONTEND_BRIDGE_BACKEND_URL."
            )
        return backend_url.rstrip("/")

    def _write_env_file(self, path: Path, values: dict[str, str]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)
            for key, value in values.items():
                set_key(path, key, value, quote_mode="never")
        except OSError as e:
            raise SpawnError(
                self.definition.serve_command or "",
                self.definition.resolved_cwd,
                e,
                port=self.definition.port,
                url=self.definition.url,
            ) from e
        logger.debug(f"Wrote {len(values)} variable(s) to {path}")

    def _spawn(self, command: str, cwd: str, env: dict[str, str]) -> SpawnedProcess:
        logger.info(f"Starting frontend '{self.definition.key}': {command} (cwd={cwd})")
        try:
            return self.spawner.spawn(command, cwd, env)
        except OSError as e:
            raise SpawnError(
                command, cwd, e, port=self.definition.port, url=self.definition.url
            ) from e

    def _wait_until_ready(self, process: SpawnedProcess) -> None:
        definition = self.definition
        pattern = re.compile(definition.ready_pattern, re.IGNORECASE | re.MULTILINE)
        captured: deque[str] = deque(maxlen=_READY_BUFFER_LINES)

        def matched(line: str) -> bool:
            captured.append(line)
            return pattern.search("\n".join(captured)) is not None

        timeout = definition.ready_timeout or self.settings.ready_timeout
        deadline = time.monotonic() + timeout

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadinessTimeoutError(
                    definition.serve_command or "",
                    definition.ready_pattern,
                    timeout,
                    self._tail(process),
                    port=definition.port,
                    url=definition.url,
                )
            line = process.next_line(timeout=min(remaining, _OUTPUT_POLL_INTERVAL))
            if line is not None:
                if matched(line):
                    logger.debug(f"Ready pattern matched: {line}")
                    return
                continue
            returncode = process.poll()
            if returncode is not None:
                # Drain whatever the process printed before exiting.
                line = process.next_line(timeout=_OUTPUT_POLL_INTERVAL)
                while line is not None:
                    if matched(line):
                        return
                    line = process.next_line(timeout=_OUTPUT_POLL_INTERVAL)
                raise ProcessExitedError(
                    definition.serve_command or "",
                    returncode,
                    self._tail(process),
                    port=definition.port,
                    url=definition.url,
                )

    def _verify_http(self) -> None:
        """Retry the HTTP check while nothing answers.

        Dev servers sometimes log readiness slightly before the listener is
        bound.
        """
        url = self.definition.url
        attempts = self.settings.http_verify_attempts
        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(self.settings.http_verify_interval),
            retry=retry_if_result(_no_response),
            before_sleep=log_retry_attempt,
            retry_error_callback=_last_status,
        )
        status = retrying(self.probe.check, url)
        if status == 0:
            raise HttpVerificationError(url, attempts, status, port=self.definition.port)
        logger.debug(f"HTTP check for {url} returned {status}")

    def _prime(self) -> None:
        # Dev servers such as Vite compile on the first request.
        if self.probe.get(self.definition.url, timeout=DEFAULT_HTTP_GET_TIMEOUT) is False:
            logger.warning(f"Warmup request to {self.definition.url} failed")

    def _discard(self, process: SpawnedProcess) -> None:
        try:
            process.stop(self.settings.stop_timeout)
        except Exception as e:
            logger.error(f"Failed to stop frontend after start failure: {e}")

    def _tail(self, process: SpawnedProcess) -> str:
        return "\n".join(
            f"  {line}" for line in process.output_tail(self.settings.output_tail_lines)
        )

    def _log_output(self, line: str) -> None:
        output_logger.debug(f"{self.definition.key} | {line}")
