"""Cross-platform process tracking and stop helpers for spawned frontends.

Design goals:
- Only stop processes we started (tracked by pid + create_time).
- Prefer graceful shutdown (SIGTERM to the process group), escalate to SIGKILL.
- Work on POSIX + Windows (best-effort graceful on Windows).
"""

from __future__ import annotations

import os
import signal
import time
from typing import ClassVar

import psutil
from pydantic import BaseModel, ConfigDict

from frontend_bridge.logging import BridgeLogComponent, get_logger


logger = get_logger(BridgeLogComponent.PROCESS_CONTROL)


class TrackedProcess(BaseModel):
    """A process we started and are allowed to manage.

    create_time protects against PID reuse. pgid enables POSIX process-group
    shutdown even if the shell that launched the dev server already exited.
    """

    pid: int | None = None
    create_time: float | None = None
    pgid: int | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


def _get_pgid_safe(pid: int) -> int | None:
    # Windows doesn't have pgid.
    if os.name == "nt":
        return None
    try:
        return os.getpgid(pid)
    except OSError:
        return None


def is_pid_alive(pid: int) -> bool:
    """True if a process with this PID exists and is not a zombie.

    Non-positive and out-of-range PIDs are never alive.
    """
    if pid <= 0:
        return False
    try:
        if not psutil.pid_exists(pid):
            return False
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except (psutil.NoSuchProcess, OverflowError, ValueError):
        return False
    except psutil.AccessDenied:
        # Exists but belongs to another user.
        return True


def track_process(pid: int) -> TrackedProcess | None:
    """Create a TrackedProcess for a running PID, recording create_time and pgid."""
    try:
        proc = psutil.Process(pid)
        return TrackedProcess(
            pid=pid,
            create_time=float(proc.create_time()),
            pgid=_get_pgid_safe(pid),
        )
    except (psutil.Error, OSError):
        return None


def validate_tracked(tp: TrackedProcess) -> psutil.Process | None:
    """Return a psutil.Process only if PID matches create_time (prevents PID reuse bugs)."""
    if tp.pid is None or tp.create_time is None:
        return None
    try:
        proc = psutil.Process(tp.pid)
        if abs(float(proc.create_time()) - float(tp.create_time)) > 0.001:
            return None
        return proc
    except (psutil.Error, OSError):
        return None


def _list_pgid_members(pgid: int) -> list[int]:
    """Return PIDs in a process group (POSIX only)."""
    if os.name == "nt":
        return []
    pids: list[int] = []
    for proc in psutil.process_iter(["pid"]):
        try:
            pid = int(proc.pid)
            if _get_pgid_safe(pid) != pgid:
                continue
            if proc.status() == psutil.STATUS_ZOMBIE:
                continue
            pids.append(pid)
        except (psutil.Error, OSError):
            continue
    return pids


def _wait_for_pgid_empty(pgid: int, timeout: float, poll: float = 0.1) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if not _list_pgid_members(pgid):
            return True
        time.sleep(poll)
    return not _list_pgid_members(pgid)


def _terminate_tree(root: psutil.Process, timeout: float) -> bool:
    """Terminate a process tree, escalating to kill. Returns True if all exited."""
    try:
        children = root.children(recursive=True)
    except psutil.Error:
        children = []

    # Children first gives root a chance to exit cleanly.
    for proc in [*children, root]:
        try:
            proc.terminate()
        except psutil.Error:
            pass

    _, alive = psutil.wait_procs([*children, root], timeout=timeout)
    if not alive:
        return True
    for proc in alive:
        try:
            proc.kill()
        except psutil.Error:
            pass
    _, alive = psutil.wait_procs(alive, timeout=max(0.5, timeout / 2))
    return not alive


def stop_tracked_process(
    tp: TrackedProcess,
    *,
    name: str,
    sigterm_timeout: float = 3.0,
    sigkill_timeout: float = 1.0,
) -> bool:
    """Stop a tracked process and its children.

    Behavior:
    - POSIX: signal the process group (SIGTERM -> SIGKILL).
    - Windows: terminate/kill the process tree.

    Returns True when nothing of the process is left running. Never raises.
    """
    if os.name == "nt" or tp.pgid is None:
        proc = validate_tracked(tp)
        if proc is None:
            return True
        logger.debug(f"Stopping {name} pid={tp.pid}")
        return _terminate_tree(proc, timeout=sigterm_timeout)

    logger.debug(f"Stopping {name} pgid={tp.pgid}")
    # Group shutdown works even if the original pid has already exited.
    try:
        os.killpg(tp.pgid, signal.SIGTERM)
    except ProcessLookupError:
        return True
    except OSError as e:
        logger.warning(f"Could not signal {name} process group {tp.pgid}: {e}")
    if _wait_for_pgid_empty(tp.pgid, sigterm_timeout):
        return True

    logger.debug(f"{name} did not exit after SIGTERM, sending SIGKILL")
    try:
        os.killpg(tp.pgid, signal.SIGKILL)
    except ProcessLookupError:
        return True
    except OSError as e:
        logger.warning(f"Could not kill {name} process group {tp.pgid}: {e}")
    if _wait_for_pgid_empty(tp.pgid, sigkill_timeout):
        return True

    # Last resort: if we still have a valid root process, kill its tree explicitly.
    proc = validate_tracked(tp)
    if proc is not None:
        return _terminate_tree(proc, timeout=sigkill_timeout)
    return not _list_pgid_members(tp.pgid)


def find_listeners_for_port(port: int) -> list[int]:
    """Return PIDs that have a LISTEN socket bound to the port (best-effort)."""
    pids: set[int] = set()
    try:
        for conn in psutil.net_connections(kind="inet"):
            if not conn.laddr or getattr(conn.laddr, "port", None) != port:
                continue
            if conn.status != psutil.CONN_LISTEN:
                continue
            if conn.pid:
                pids.add(int(conn.pid))
    except (psutil.AccessDenied, PermissionError):
        # Some platforms (notably macOS) need elevated privileges for a
        # system-wide listing; per-process connections usually still work.
        for proc in psutil.process_iter(["pid"]):
            try:
                for c in proc.net_connections(kind="inet"):
                    if (
                        getattr(c.laddr, "port", None) == port
                        and c.status == psutil.CONN_LISTEN
                    ):
                        pids.add(int(proc.pid))
                        break
            except (psutil.Error, OSError):
                continue
    return sorted(pids)
