"""Shared fixtures: fake processes and isolated settings."""

from __future__ import annotations

import os
import shutil
import socket
import ssl
import subprocess
import threading
import time
from collections.abc import Iterator, Mapping
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from frontend_bridge.markers import PortMarker
from frontend_bridge.models import BridgeSettings
from frontend_bridge.probe import FakeProbe

pytest_plugins = ["pytester"]


class FakeProcess:
    """SpawnedProcess that replays canned output lines.

    Once the lines run out it either exits with ``exit_code`` or keeps
    running silently. The pid defaults to the test process so marker
    liveness checks see it as alive.
    """

    def __init__(
        self,
        lines: list[str],
        *,
        exit_code: int | None = None,
        pid: int | None = None,
        stop_result: bool = True,
        stop_error: Exception | None = None,
    ):
        self.pid = pid if pid is not None else os.getpid()
        self._pending = list(lines)
        self.printed: list[str] = []
        self.exit_code = exit_code
        self.stop_result = stop_result
        self.stop_error = stop_error
        self.released = False
        self.stop_calls = 0

    def next_line(self, timeout: float) -> str | None:
        if self._pending:
            line = self._pending.pop(0)
            self.printed.append(line)
            return line
        if self.exit_code is None:
            time.sleep(min(timeout, 0.01))
        return None

    def release_output(self) -> None:
        self.released = True

    def poll(self) -> int | None:
        if self.stop_calls:
            return -15
        if self._pending:
            return None
        return self.exit_code

    def output_tail(self, count: int) -> list[str]:
        return self.printed[-count:]

    def stop(self, timeout: float) -> bool:
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error
        return self.stop_result


class FakeSpawner:
    """ProcessSpawner that records spawn calls and hands out FakeProcesses."""

    def __init__(
        self,
        lines: list[str] | None = None,
        *,
        exit_code: int | None = None,
        error: OSError | None = None,
    ):
        self.lines = lines if lines is not None else ["VITE v5.0.0  ready in 312 ms"]
        self.exit_code = exit_code
        self.error = error
        self.calls: list[tuple[str, str, dict[str, str]]] = []
        self.processes: list[FakeProcess] = []

    def spawn(self, command: str, cwd: str, env: Mapping[str, str]) -> FakeProcess:
        self.calls.append((command, cwd, dict(env)))
        if self.error is not None:
            raise self.error
        process = FakeProcess(self.lines, exit_code=self.exit_code)
        self.processes.append(process)
        return process


@pytest.fixture
def marker_dir(tmp_path: Path) -> Path:
    return tmp_path / "markers"


@pytest.fixture
def markers(marker_dir: Path) -> PortMarker:
    return PortMarker(marker_dir)


@pytest.fixture
def settings(marker_dir: Path) -> BridgeSettings:
    return BridgeSettings(
        marker_dir=marker_dir,
        ready_timeout=1.0,
        http_verify_attempts=3,
        http_verify_interval=0.01,
        port_probe_timeout=0.1,
        stop_timeout=0.1,
    )


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    path = tmp_path / "frontend"
    path.mkdir()
    return path


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class _OkHandler(BaseHTTPRequestHandler):
    def do_HEAD(self) -> None:
        self.send_response(200)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self) -> None:
        body = b"<div id=app></div>"
        self.send_response(200)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args) -> None:
        pass


@pytest.fixture
def tls_url(tmp_path: Path) -> Iterator[str]:
    """HTTPS server with a freshly generated self-signed certificate."""
    openssl = shutil.which("openssl")
    if openssl is None:
        pytest.skip("openssl is not installed")
    cert, key = tmp_path / "cert.pem", tmp_path / "key.pem"
    subprocess.run(
        [
            openssl, "req", "-x509", "-newkey", "rsa:2048", "-nodes",
            "-keyout", str(key), "-out", str(cert),
            "-days", "1", "-subj", "/CN=localhost",
        ],
        check=True,
        capture_output=True,
    )
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert, key)

    server = ThreadingHTTPServer(("127.0.0.1", 0), _OkHandler)
    server.socket = context.wrap_socket(server.socket, server_side=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"https://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)
