"""Launching serve commands and capturing their console output.

The lifecycle code talks to ``ProcessSpawner`` / ``SpawnedProcess`` only, so
tests can substitute processes that never touch the OS.
"""

from __future__ import annotations

import os
import queue
import subprocess
import threading
from collections import deque
from collections.abc import Callable, Mapping
from typing import IO, Any, Protocol

from frontend_bridge.constants import DEFAULT_OUTPUT_TAIL_LINES
from frontend_bridge.process_control import (
    TrackedProcess,
    stop_tracked_process,
    track_process,
)


class SpawnedProcess(Protocol):
    """A running serve command as seen by FrontendServer."""

    pid: int

    def next_line(self, timeout: float) -> str | None:
        """Next line of combined stdout/stderr, or None if none arrived in time."""
        ...

    def release_output(self) -> None:
        """Stop queueing output for next_line (it is still drained and logged)."""
        ...

    def poll(self) -> int | None:
        """Exit code, or None while running."""
        ...

    def output_tail(self, count: int) -> list[str]:
        """The last ``count`` lines of output."""
        ...

    def stop(self, timeout: float) -> bool:
        """Terminate gracefully, force-kill after ``timeout``. True if it is gone."""
        ...


class ProcessSpawner(Protocol):
    def spawn(
        self, command: str, cwd: str, env: Mapping[str, str]
    ) -> SpawnedProcess: ...


_EOF = object()


class ManagedProcess:
    """A shell command running in its own process group.

    A daemon reader thread drains the combined stdout/stderr pipe for the
    whole life of the process so the child never blocks on a full pipe.
    """

    def __init__(
        self,
        popen: subprocess.Popen[bytes],
        *,
        name: str,
        on_line: Callable[[str], None] | None = None,
        tail_lines: int = DEFAULT_OUTPUT_TAIL_LINES,
    ):
        self.popen: subprocess.Popen[bytes] = popen
        self.pid: int = popen.pid
        self.name: str = name
        # Track immediately: the shell may hand off to node and exit quickly.
        self.tracked: TrackedProcess | None = track_process(popen.pid)
        self._on_line = on_line
        self._lines: queue.Queue[Any] = queue.Queue()
        self._tail: deque[str] = deque(maxlen=max(tail_lines, 1) * 5)
        self._queueing = True
        self._eof = False
        self._reader = threading.Thread(
            target=self._read_output,
            args=(popen.stdout,),
            name=f"frontend-bridge-output-{name}",
            daemon=True,
        )
        self._reader.start()

    def _read_output(self, stream: IO[bytes] | None) -> None:
        if stream is None:
            self._lines.put(_EOF)
            return
        try:
            for raw in iter(stream.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip()
                if not line:
                    continue
                self._tail.append(line)
                if self._queueing:
                    self._lines.put(line)
                if self._on_line is not None:
                    self._on_line(line)
        except (OSError, ValueError):
            # Pipe closed underneath us during stop().
            pass
        finally:
            self._lines.put(_EOF)

    def next_line(self, timeout: float) -> str | None:
        if self._eof:
            # Output closed; block on the process instead of spinning.
            try:
                self.popen.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                pass
            return None
        try:
            item = self._lines.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _EOF:
            self._eof = True
            return None
        return item

    def release_output(self) -> None:
        self._queueing = False
        while True:
            try:
                self._lines.get_nowait()
            except queue.Empty:
                break

    def poll(self) -> int | None:
        return self.popen.poll()

    def output_tail(self, count: int) -> list[str]:
        return list(self._tail)[-count:] if count > 0 else []

    def stop(self, timeout: float) -> bool:
        stopped = True
        if self.tracked is not None:
            stopped = stop_tracked_process(
                self.tracked, name=self.name, sigterm_timeout=timeout
            )
        elif self.popen.poll() is None:
            self.popen.terminate()
            try:
                self.popen.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                self.popen.kill()
        try:
            # Reap the shell so it does not linger as a zombie.
            self.popen.wait(timeout=1.0)
        except subprocess.TimeoutExpired:
            stopped = False
        self._reader.join(timeout=1.0)
        if self.popen.stdout is not None:
            self.popen.stdout.close()
        return stopped


class SubprocessSpawner:
    """ProcessSpawner running serve commands through the shell."""

    def __init__(
        self,
        *,
        name: str = "frontend",
        on_line: Callable[[str], None] | None = None,
        tail_lines: int = DEFAULT_OUTPUT_TAIL_LINES,
    ):
        self.name: str = name
        self.on_line: Callable[[str], None] | None = on_line
        self.tail_lines: int = tail_lines

    def spawn(self, command: str, cwd: str, env: Mapping[str, str]) -> ManagedProcess:
        """Start ``command`` in ``cwd`` with ``env``.

        Raises:
            OSError: If the shell or working directory is unusable.
        """
        # Create process group/session so we can stop the full dev server tree.
        popen_kwargs: dict[str, Any] = {}
        if os.name == "nt":
            popen_kwargs["creationflags"] = (
                subprocess.CREATE_NEW_PROCESS_GROUP  # type: ignore[attr-defined]
            )
        else:
            popen_kwargs["start_new_session"] = True

        popen = subprocess.Popen(
            command,
            shell=True,
            cwd=cwd,
            env=dict(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            **popen_kwargs,
        )
        return ManagedProcess(
            popen, name=self.name, on_line=self.on_line, tail_lines=self.tail_lines
        )
