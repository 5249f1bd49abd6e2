"""Tests for the pytest plugin, run in isolated pytester sessions."""

from __future__ import annotations

import pytest

from frontend_bridge.bridge import Bridge

CONFTEST = """
def pytest_frontend_bridge_setup(bridge):
    bridge.add("http://localhost:5999")
    bridge.add("http://localhost:6000", name="admin").child("/reports", "reports")
"""


class BridgeRecorder:
    """Plugin that keeps a handle on the session's Bridge."""

    def __init__(self) -> None:
        self.bridge: Bridge | None = None

    def pytest_frontend_bridge_setup(self, bridge: Bridge) -> None:
        self.bridge = bridge


class TestPluginFixtures:
    def test_frontend_url_fixture(self, pytester: pytest.Pytester) -> None:
        pytester.makeconftest(CONFTEST)
        pytester.makepyfile(
            """
            def test_urls(frontend_url):
                assert frontend_url() == "http://localhost:5999/"
                assert frontend_url("/login") == "http://localhost:5999/login"
                assert frontend_url("/x", name="admin") == "http://localhost:6000/x"
                assert frontend_url("/q3", name="reports") == "http://localhost:6000/reports/q3"

            def test_bridge_fixture(frontend_bridge):
                assert frontend_bridge.has("admin")
                assert frontend_bridge.url("reports") == "http://localhost:6000/reports"
            """
        )

        result = pytester.runpytest()

        result.assert_outcomes(passed=2)

    def test_unknown_frontend_fails_the_test(self, pytester: pytest.Pytester) -> None:
        pytester.makeconftest(CONFTEST)
        pytester.makepyfile(
            """
            def test_missing(frontend_url):
                frontend_url("/", name="missing")
            """
        )

        result = pytester.runpytest()

        result.assert_outcomes(failed=1)
        result.stdout.fnmatch_lines(["*Frontend 'missing' not configured*"])

    def test_hook_in_nested_conftest(self, pytester: pytest.Pytester) -> None:
        sub = pytester.mkpydir("sub")
        (sub / "conftest.py").write_text(
            "def pytest_frontend_bridge_setup(bridge):\n"
            "    bridge.add('http://localhost:7000', name='late')\n"
        )
        (sub / "test_late.py").write_text(
            "def test_late(frontend_url):\n"
            "    assert frontend_url('/', name='late') == 'http://localhost:7000/'\n"
        )

        result = pytester.runpytest()

        result.assert_outcomes(passed=1)


class TestPluginOptions:
    def test_command_line_options(self, pytester: pytest.Pytester) -> None:
        marker_dir = pytester.path / "markers"
        pytester.makepyfile(
            f"""
            from pathlib import Path

            def test_settings(frontend_bridge):
                settings = frontend_bridge.settings
                assert settings.ready_timeout == 7.5
                assert settings.backend_url == "http://127.0.0.1:9000"
                assert settings.marker_dir == Path({str(marker_dir)!r})
                assert frontend_bridge.registry.markers.directory == Path({str(marker_dir)!r})
            """
        )

        result = pytester.runpytest(
            "--frontend-bridge-timeout=7.5",
            "--frontend-bridge-backend-url=http://127.0.0.1:9000",
            f"--frontend-bridge-marker-dir={marker_dir}",
        )

        result.assert_outcomes(passed=1)

    def test_ini_options(self, pytester: pytest.Pytester) -> None:
        pytester.makeini(
            """
            [pytest]
            frontend_bridge_timeout = 42
            frontend_bridge_backend_url = http://backend.test
            """
        )
        pytester.makepyfile(
            """
            def test_settings(frontend_bridge):
                assert frontend_bridge.settings.ready_timeout == 42
                assert frontend_bridge.settings.backend_url == "http://backend.test"
            """
        )

        result = pytester.runpytest()

        result.assert_outcomes(passed=1)

    def test_command_line_overrides_ini(self, pytester: pytest.Pytester) -> None:
        pytester.makeini(
            """
            [pytest]
            frontend_bridge_timeout = 42
            """
        )
        pytester.makepyfile(
            """
            def test_settings(frontend_bridge):
                assert frontend_bridge.settings.ready_timeout == 3
            """
        )

        result = pytester.runpytest("--frontend-bridge-timeout=3")

        result.assert_outcomes(passed=1)

    def test_environment_settings(
        self, pytester: pytest.Pytester, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FRONTEND_BRIDGE_URL", "http://staging.test")
        monkeypatch.setenv("FRONTEND_BRIDGE_READY_TIMEOUT", "12")
        pytester.makepyfile(
            """
            def test_default(frontend_url, frontend_bridge):
                assert frontend_url("/home") == "http://staging.test/home"
                assert frontend_bridge.settings.ready_timeout == 12
            """
        )

        result = pytester.runpytest()

        result.assert_outcomes(passed=1)


class TestPluginTeardown:
    def test_bridge_reset_at_session_end(self, pytester: pytest.Pytester) -> None:
        pytester.makeconftest(CONFTEST)
        pytester.makepyfile("def test_noop(frontend_bridge):\n    assert frontend_bridge.has()\n")
        recorder = BridgeRecorder()

        result = pytester.runpytest_inprocess(plugins=[recorder])

        result.assert_outcomes(passed=1)
        assert recorder.bridge is not None
        assert recorder.bridge.registry.definitions == {}

    def test_reset_even_when_tests_fail(self, pytester: pytest.Pytester) -> None:
        pytester.makeconftest(CONFTEST)
        pytester.makepyfile("def test_fails(frontend_url):\n    frontend_url()\n    assert False\n")
        recorder = BridgeRecorder()

        result = pytester.runpytest_inprocess(plugins=[recorder])

        result.assert_outcomes(failed=1)
        assert recorder.bridge.registry.definitions == {}
