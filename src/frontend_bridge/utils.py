import logging
import os
import time
from collections.abc import Mapping
from pathlib import Path
from urllib.parse import urlsplit

from rich.console import Console
from rich.markup import escape
from typing_extensions import override

from frontend_bridge.constants import CI_VARIABLES

# Configure console to handle encoding errors gracefully on Windows
console = Console(legacy_windows=False, stderr=True)


def format_elapsed_ms(start_time_perf: float) -> str:
    """Format elapsed time since start_time_perf.

    If under 1 second, return milliseconds. Otherwise, return seconds and remaining milliseconds.
    """
    elapsed_seconds = time.perf_counter() - start_time_perf
    if elapsed_seconds < 1:
        return f"{int(elapsed_seconds * 1000)}ms"
    seconds = int(elapsed_seconds)
    remaining_ms = int((elapsed_seconds - seconds) * 1000)
    return f"{seconds}s {remaining_ms}ms"


def print_with_prefix(prefix: str, text: str, color: str, width: int = 10):
    """Print text with a colored prefix.

    Args:
        prefix: The prefix text to display
        text: The main text to display
        color: The color for the prefix
        width: The width to pad the prefix to (default: 10)
    """
    current_time = time.time()
    timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(current_time))
    milliseconds = int((current_time % 1) * 1000)
    timestamp_with_ms = f"{timestamp}.{milliseconds:03d}"

    padded_prefix = escape(prefix).ljust(width)

    for line in text.split("\n"):
        console.print(
            f"{timestamp_with_ms} | [{color}]{padded_prefix}[/] | {escape(line)}"
        )


class PrefixedLogHandler(logging.Handler):
    """A logging handler that uses print_with_prefix to output log messages."""

    def __init__(self, prefix: str, color: str, width: int = 10):
        super().__init__()
        self.prefix: str = prefix
        self.color: str = color
        self.width: int = width

    @override
    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            color = self.color
            if record.levelno >= logging.ERROR:
                color = "red"
            elif record.levelno >= logging.WARNING:
                color = "yellow"

            print_with_prefix(self.prefix, msg, color, width=self.width)
        except Exception:
            self.handleError(record)


def is_ci(environ: Mapping[str, str] | None = None) -> bool:
    """Detect a CI environment from the variables CI platforms set."""
    env = os.environ if environ is None else environ
    return any(env.get(name) for name in CI_VARIABLES)


def normalize_path(path: str | os.PathLike[str] | None) -> str:
    """Canonicalize a working directory for comparison.

    Symlinks are resolved and trailing separators dropped; ``None`` means the
    current working directory.
    """
    if path is None:
        return str(Path.cwd().resolve())
    return str(Path(path).expanduser().resolve())


def join_url(base: str, path: str = "/") -> str:
    """Join a base URL and a path with exactly one slash between them."""
    return base.rstrip("/") + "/" + path.lstrip("/")


def split_host_port(url: str) -> tuple[str, int]:
    """Return ``(host, port)`` for an http(s) URL, defaulting the port by scheme."""
    parts = urlsplit(url)
    host = parts.hostname or "localhost"
    port = parts.port
    if port is None:
        port = 443 if parts.scheme == "https" else 80
    return host, port
