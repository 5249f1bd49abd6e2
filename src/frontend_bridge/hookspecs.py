"""Hooks that frontend-bridge adds to pytest."""

import pytest

from frontend_bridge.bridge import Bridge


@pytest.hookspec(historic=True)
def pytest_frontend_bridge_setup(bridge: Bridge) -> None:
    """Register the frontends of a test suite.

    Called once per session, before any test runs. Historic: conftest files
    loaded later during collection are called on registration.

    Example:
        def pytest_frontend_bridge_setup(bridge):
            bridge.add("http://localhost:5173").serve("npm run dev", cwd="web")
    """
