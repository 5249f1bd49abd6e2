"""Tests for FrontendDefinition configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from frontend_bridge.constants import DEFAULT_READY_PATTERN, FRAMEWORK_API_ENV_VARS
from frontend_bridge.definition import ChildFrontend, FrontendDefinition
from frontend_bridge.exceptions import FrontendConfigurationError


class TestDefinitionDefaults:
    def test_defaults(self) -> None:
        definition = FrontendDefinition("http://localhost:5173")

        assert definition.name is None
        assert definition.key == "default"
        assert definition.serve_command is None
        assert not definition.has_serve_command()
        assert definition.ready_pattern == DEFAULT_READY_PATTERN
        assert definition.warmup_ms == 0
        assert definition.ready_timeout is None
        assert definition.env_injections == {}
        assert definition.env_file_path is None
        assert definition.children == ()
        assert definition.trust_existing is False
        assert definition.server_key is None

    @pytest.mark.parametrize(
        "url, host, port",
        [
            ("http://localhost:5173", "localhost", 5173),
            ("http://127.0.0.1", "127.0.0.1", 80),
            ("https://app.test/base", "app.test", 443),
        ],
    )
    def test_host_and_port(self, url: str, host: str, port: int) -> None:
        definition = FrontendDefinition(url)
        assert (definition.host, definition.port) == (host, port)


class TestDefinitionValidation:
    """Invalid configuration is rejected immediately, without side effects."""

    @pytest.mark.parametrize(
        "url",
        ["localhost:5173", "ftp://localhost", "http://", "http://localhost:99999", ""],
    )
    def test_invalid_url(self, url: str) -> None:
        with pytest.raises(FrontendConfigurationError):
            FrontendDefinition(url)

    def test_empty_name(self) -> None:
        with pytest.raises(FrontendConfigurationError):
            FrontendDefinition("http://localhost:5173", name="  ")

    def test_invalid_ready_pattern(self) -> None:
        with pytest.raises(FrontendConfigurationError, match="Invalid ready pattern"):
            FrontendDefinition("http://localhost:5173").ready_when("(unclosed")

    def test_negative_warmup(self) -> None:
        with pytest.raises(FrontendConfigurationError):
            FrontendDefinition("http://localhost:5173").warmup(-1)

    def test_non_positive_timeout(self) -> None:
        with pytest.raises(FrontendConfigurationError):
            FrontendDefinition("http://localhost:5173").timeout(0)

    def test_empty_command(self) -> None:
        with pytest.raises(FrontendConfigurationError):
            FrontendDefinition("http://localhost:5173").serve("   ")

    def test_invalid_env_name(self) -> None:
        with pytest.raises(FrontendConfigurationError):
            FrontendDefinition("http://localhost:5173").env({"A=B": "/api"})

    def test_child_requires_name(self) -> None:
        with pytest.raises(FrontendConfigurationError):
            FrontendDefinition("http://localhost:5173").child("/admin", "")

    def test_configuration_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            FrontendDefinition("nope")


class TestDefinitionBuilder:
    def test_fluent_chain_returns_same_instance(self, app_dir: Path) -> None:
        definition = FrontendDefinition("http://localhost:5173", name="web")
        result = (
            definition.serve("npm run dev", cwd=app_dir)
            .ready_when(r"VITE.*ready")
            .timeout(30)
            .warmup(250)
            .env({"VITE_API_URL": "/api"})
            .env_file(".env.test")
            .child("/admin", "admin")
            .trust_existing_server()
        )

        assert result is definition
        assert definition.serve_command == "npm run dev"
        assert definition.working_directory == str(app_dir)
        assert definition.resolved_cwd == str(app_dir.resolve())
        assert definition.ready_pattern == r"VITE.*ready"
        assert definition.ready_timeout == 30.0
        assert definition.warmup_ms == 250
        assert definition.env_injections == {"VITE_API_URL": "/api"}
        assert definition.env_file_path == app_dir.resolve() / ".env.test"
        assert definition.children == (ChildFrontend(path="/admin", name="admin"),)
        assert definition.trust_existing is True

    def test_env_presets(self) -> None:
        definition = FrontendDefinition("http://localhost:5173").env_presets("/api")

        injections = definition.env_injections
        assert set(injections) == set(FRAMEWORK_API_ENV_VARS)
        assert injections["VITE_API_URL"] == "/api"
        assert injections["NEXT_PUBLIC_API_URL"] == "/api"

    def test_env_merges(self) -> None:
        definition = (
            FrontendDefinition("http://localhost:5173")
            .env({"A": "/a"})
            .env({"B": "/b", "A": "/other"})
        )
        assert definition.env_injections == {"A": "/other", "B": "/b"}

    def test_env_injections_are_a_copy(self) -> None:
        definition = FrontendDefinition("http://localhost:5173").env({"A": "/a"})
        definition.env_injections["B"] = "/b"
        assert definition.env_injections == {"A": "/a"}

    def test_child_url(self) -> None:
        definition = FrontendDefinition("http://localhost:5173/")
        assert definition.child_url("/admin") == "http://localhost:5173/admin"
        assert definition.child_url("admin/") == "http://localhost:5173/admin/"

    def test_server_key_uses_resolved_cwd(self, app_dir: Path) -> None:
        first = FrontendDefinition("http://localhost:5173").serve("npm run dev", cwd=app_dir)
        second = FrontendDefinition("http://localhost:5173", name="b").serve(
            "npm run dev", cwd=f"{app_dir}/"
        )
        assert first.server_key == second.server_key == ("npm run dev", str(app_dir.resolve()))
