"""frontend-bridge CLI: inspect and clean up port markers left by test runs."""

import logging
import time
from pathlib import Path
from typing import Annotated

from rich.table import Table
from typer import Argument, Exit, Option, Typer

from frontend_bridge import __version__
from frontend_bridge.constants import DEFAULT_HTTP_CHECK_TIMEOUT, ENV_MARKER_DIR
from frontend_bridge.exceptions import MarkerIOError
from frontend_bridge.logging import configure_logging
from frontend_bridge.markers import PortMarker
from frontend_bridge.probe import HttpxProbe
from frontend_bridge.process_control import find_listeners_for_port, is_pid_alive
from frontend_bridge.utils import console


app = Typer(
    name="frontend-bridge",
    help="Inspect the frontend dev servers started by test runs",
    no_args_is_help=True,
)

MarkerDirOption = Annotated[
    Path | None,
    Option(
        "--marker-dir",
        envvar=ENV_MARKER_DIR,
        help="Directory holding marker files (default: system temp dir)",
    ),
]


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"frontend-bridge {__version__}")
        raise Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = False,
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Show debug logs")
    ] = False,
):
    if verbose:
        configure_logging(logging.DEBUG)


@app.command(name="markers", help="List port markers and whether their process is alive")
def list_markers(marker_dir: MarkerDirOption = None):
    markers = PortMarker(marker_dir)
    records = markers.all()
    if not records:
        console.print(f"[dim]No markers in {markers.directory}[/dim]")
        return

    table = Table(
        title="Frontend Servers",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Port", justify="right", style="green", no_wrap=True)
    table.add_column("PID", justify="right", no_wrap=True)
    table.add_column("Status", justify="center", no_wrap=True)
    table.add_column("Listeners", justify="right")
    table.add_column("Started", style="dim", no_wrap=True)
    table.add_column("Command", style="cyan", overflow="fold")
    table.add_column("Working directory", overflow="fold")

    for record in records:
        status = (
            "[green]●[/green] Running"
            if is_pid_alive(record.pid)
            else "[red]●[/red] Stale"
        )
        listeners = ", ".join(str(pid) for pid in find_listeners_for_port(record.port))
        started = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.started_at))
        table.add_row(
            str(record.port),
            str(record.pid),
            status,
            listeners or "-",
            started,
            record.command,
            record.cwd,
        )
    console.print(table)


@app.command(name="clear", help="Delete port markers")
def clear_markers(
    marker_dir: MarkerDirOption = None,
    port: Annotated[
        int | None, Option("--port", help="Only clear the marker for this port")
    ] = None,
    stale_only: Annotated[
        bool,
        Option("--stale-only", help="Only clear markers whose process is gone"),
    ] = False,
):
    markers = PortMarker(marker_dir)
    if port is not None:
        record = markers.read(port)
        records = [record] if record is not None else []
    else:
        records = markers.all()

    cleared = 0
    for record in records:
        if stale_only and is_pid_alive(record.pid):
            continue
        try:
            markers.delete(record.port)
        except MarkerIOError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise Exit(code=1)
        cleared += 1
        console.print(f"[green]✓[/green] Cleared marker for port {record.port}")

    if not cleared:
        console.print("[dim]Nothing to clear[/dim]")


@app.command(name="check", help="Check whether a URL answers HTTP")
def check_url(
    url: Annotated[str, Argument(help="URL to probe, e.g. http://localhost:5173")],
    timeout: Annotated[
        float, Option(help="Request timeout in seconds")
    ] = DEFAULT_HTTP_CHECK_TIMEOUT,
):
    status = HttpxProbe().check(url, timeout=timeout)
    if status == 0:
        console.print(f"[red]❌ No response from {url}[/red]")
        raise Exit(code=1)
    console.print(f"[green]✓[/green] {url} answered with HTTP {status}")
