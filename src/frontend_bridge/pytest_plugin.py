"""pytest integration: one Bridge per session, torn down when pytest exits."""

from __future__ import annotations

import atexit
import logging
from collections.abc import Callable

import pytest

from frontend_bridge import hookspecs
from frontend_bridge.bridge import Bridge
from frontend_bridge.logging import configure_logging
from frontend_bridge.models import BridgeSettings


bridge_key = pytest.StashKey[Bridge]()

FrontendUrl = Callable[..., str]


def pytest_addhooks(pluginmanager: pytest.PytestPluginManager) -> None:
    pluginmanager.add_hookspecs(hookspecs)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("frontend-bridge", "frontend dev servers")
    group.addoption(
        "--frontend-bridge-timeout",
        dest="frontend_bridge_timeout",
        type=float,
        default=None,
        help="Seconds to wait for a frontend to report readiness.",
    )
    group.addoption(
        "--frontend-bridge-marker-dir",
        dest="frontend_bridge_marker_dir",
        default=None,
        help="Directory for port marker files (default: system temp dir).",
    )
    group.addoption(
        "--frontend-bridge-backend-url",
        dest="frontend_bridge_backend_url",
        default=None,
        help="Backend URL injected into frontend environments.",
    )
    group.addoption(
        "--frontend-bridge-verbose",
        dest="frontend_bridge_verbose",
        action="store_true",
        default=False,
        help="Print lifecycle logs and dev server output to the console.",
    )
    parser.addini("frontend_bridge_timeout", "Frontend readiness timeout in seconds.")
    parser.addini("frontend_bridge_marker_dir", "Directory for port marker files.")
    parser.addini("frontend_bridge_backend_url", "Backend URL injected into frontends.")


def _option(config: pytest.Config, name: str) -> str | None:
    value = config.getoption(name)
    if value is None:
        value = config.getini(name) or None
    return value


def build_settings(config: pytest.Config) -> BridgeSettings:
    """Settings from the environment, overridden by ini values and CLI options."""
    settings = BridgeSettings.from_env()
    overrides: dict[str, object] = {}
    timeout = _option(config, "frontend_bridge_timeout")
    if timeout is not None:
        overrides["ready_timeout"] = float(timeout)
    marker_dir = _option(config, "frontend_bridge_marker_dir")
    if marker_dir is not None:
        overrides["marker_dir"] = marker_dir
    backend_url = _option(config, "frontend_bridge_backend_url")
    if backend_url is not None:
        overrides["backend_url"] = backend_url
    if not overrides:
        return settings
    return BridgeSettings.model_validate({**settings.model_dump(), **overrides})


@pytest.hookimpl(trylast=True)
def pytest_configure(config: pytest.Config) -> None:
    if config.getoption("frontend_bridge_verbose"):
        configure_logging(logging.DEBUG)

    bridge = Bridge(settings=build_settings(config))
    config.stash[bridge_key] = bridge
    # SIGKILL still leaves servers behind; nothing can run then.
    atexit.register(bridge.reset_all)
    config.hook.pytest_frontend_bridge_setup.call_historic(kwargs={"bridge": bridge})


def pytest_unconfigure(config: pytest.Config) -> None:
    bridge = config.stash.get(bridge_key, None)
    if bridge is None:
        return
    del config.stash[bridge_key]
    atexit.unregister(bridge.reset_all)
    bridge.reset_all()


@pytest.fixture(scope="session")
def frontend_bridge(pytestconfig: pytest.Config) -> Bridge:
    """The session's Bridge. Frontends start on the first URL lookup."""
    return pytestconfig.stash[bridge_key]


@pytest.fixture
def frontend_url(frontend_bridge: Bridge) -> FrontendUrl:
    """Build URLs on a registered frontend, starting servers on first use.

    Example:
        def test_login(page, frontend_url):
            page.goto(frontend_url("/login"))
            page.goto(frontend_url("/users", name="admin"))
    """

    def _url(path: str = "/", name: str | None = None) -> str:
        return frontend_bridge.build_url(path, name)

    return _url
