"""Port marker files identifying which frontend owns a port.

Marker files let a test run tell the servers it (or a sibling worker) started
apart from unrelated processes, so an existing server can be reused safely
without risking a connection to the wrong application.

Marker file structure::

    {
      "port": 5173,
      "cwd": "/path/to/frontend",
      "command": "npm run dev",
      "pid": 12345,
      "started_at": 1704288600
    }

The pid is only used for liveness probing. A marker whose process is gone is
stale and is treated as absent.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
import time
from pathlib import Path

from pydantic import ValidationError

from frontend_bridge.constants import MARKER_EXTENSION, MARKER_PREFIX
from frontend_bridge.exceptions import MarkerIOError
from frontend_bridge.logging import BridgeLogComponent, get_logger
from frontend_bridge.models import MarkerRecord, MarkerStatus
from frontend_bridge.process_control import is_pid_alive
from frontend_bridge.utils import normalize_path


logger = get_logger(BridgeLogComponent.MARKERS)


class PortMarker:
    """Reads, writes and verifies the per-port marker files in one directory."""

    def __init__(self, directory: str | os.PathLike[str] | None = None):
        self.directory: Path = Path(directory or tempfile.gettempdir())

    def path_for(self, port: int) -> Path:
        """Deterministic marker location for a port."""
        return self.directory / f"{MARKER_PREFIX}{port}{MARKER_EXTENSION}"

    def write(
        self,
        port: int,
        cwd: str | os.PathLike[str] | None,
        command: str,
        pid: int,
    ) -> MarkerRecord:
        """Persist the marker for a started server.

        The file is written to a temporary name and renamed into place so a
        concurrent reader never sees a half-written record.

        Raises:
            MarkerIOError: If the marker cannot be written.
        """
        record = MarkerRecord(
            port=port,
            cwd=normalize_path(cwd),
            command=command,
            pid=pid,
            started_at=int(time.time()),
        )
        path = self.path_for(port)
        tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(record.model_dump_json(indent=2))
            os.replace(tmp_path, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise MarkerIOError(port, path, "write", e) from e
        logger.debug(f"Wrote marker for port {port} (pid={pid}, cwd={record.cwd})")
        return record

    def read(self, port: int) -> MarkerRecord | None:
        """Return the marker for a port, or None if there is none.

        Unparseable content is treated as absent and the corrupt file deleted.

        Raises:
            MarkerIOError: If the file exists but cannot be read.
        """
        path = self.path_for(port)
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise MarkerIOError(port, path, "read", e) from e

        try:
            return MarkerRecord.model_validate_json(content)
        except ValidationError:
            logger.warning(f"Deleting corrupted marker file {path}")
            self.delete(port)
            return None

    def delete(self, port: int) -> None:
        """Remove the marker for a port. No-op if it does not exist."""
        try:
            self.path_for(port).unlink(missing_ok=True)
        except OSError as e:
            raise MarkerIOError(port, self.path_for(port), "delete", e) from e

    def verify(
        self, port: int, expected_cwd: str | os.PathLike[str] | None
    ) -> MarkerStatus:
        """Classify the marker for a port against the expected working directory.

        Returns:
            - NONE: no marker file, the port's occupant (if any) is unknown
            - MISMATCH: the marker's cwd differs, a different app owns the port
            - STALE: cwd matches but the pid is dead; the marker is deleted
            - MATCH: cwd matches and the pid is alive, safe to reuse
        """
        marker = self.read(port)
        if marker is None:
            return MarkerStatus.NONE

        if normalize_path(marker.cwd) != normalize_path(expected_cwd):
            return MarkerStatus.MISMATCH

        if not is_pid_alive(marker.pid):
            logger.info(f"Marker for port {port} is stale (pid {marker.pid} is gone)")
            self.delete(port)
            return MarkerStatus.STALE

        return MarkerStatus.MATCH

    def marker_cwd(self, port: int) -> str | None:
        """The working directory recorded for a port, for error messages."""
        marker = self.read(port)
        return marker.cwd if marker is not None else None

    def all(self) -> list[MarkerRecord]:
        """Every readable marker in the directory, sorted by port."""
        records: list[MarkerRecord] = []
        if not self.directory.is_dir():
            return records
        for path in self.directory.glob(f"{MARKER_PREFIX}*{MARKER_EXTENSION}"):
            port_text = path.name[len(MARKER_PREFIX) : -len(MARKER_EXTENSION)]
            if not port_text.isdigit():
                continue
            record = self.read(int(port_text))
            if record is not None:
                records.append(record)
        return sorted(records, key=lambda r: r.port)
