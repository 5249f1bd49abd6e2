"""Public entry point for test code: register frontends and resolve their URLs."""

from __future__ import annotations

from frontend_bridge.constants import DEFAULT_FRONTEND_KEY
from frontend_bridge.definition import FrontendDefinition, validate_name, validate_url
from frontend_bridge.exceptions import FrontendNotConfiguredError
from frontend_bridge.models import BackendUrl, BridgeSettings
from frontend_bridge.registry import FrontendRegistry
from frontend_bridge.utils import join_url


class Bridge:
    """Thin facade over a FrontendRegistry.

    Frontends start lazily: the first ``url()`` or ``build_url()`` call
    starts every registered server, so suites that never navigate pay
    nothing.

    Example:
        >>> bridge.add("http://localhost:5173").serve("npm run dev", cwd="../web")
        >>> bridge.add("http://localhost:5174", name="admin")
        >>> bridge.build_url("/login")
        'http://localhost:5173/login'
    """

    def __init__(
        self,
        registry: FrontendRegistry | None = None,
        *,
        settings: BridgeSettings | None = None,
    ):
        if registry is None:
            registry = FrontendRegistry(settings=settings)
        self.registry: FrontendRegistry = registry

    @property
    def settings(self) -> BridgeSettings:
        return self.registry.settings

    # === Registration ===

    def register_frontend(self, definition: FrontendDefinition) -> FrontendDefinition:
        return self.registry.register(definition)

    def add(self, url: str, name: str | None = None) -> FrontendDefinition:
        """Register a frontend and return its definition for further configuration."""
        definition = FrontendDefinition(validate_url(url), validate_name(name))
        return self.register_frontend(definition)

    def set_backend_url(self, url: BackendUrl | None) -> Bridge:
        """Backend base URL injected into frontend environments.

        A callable is evaluated right before each spawn.
        """
        self.registry.backend_url = url
        return self

    # === Resolution ===

    def has(self, name: str | None = None) -> bool:
        if self.registry.has(name):
            return True
        return name is None and self.settings.default_url is not None

    def resolve_url(self, name: str | None = None) -> str:
        """The configured URL for ``name`` without starting anything.

        Raises:
            FrontendNotConfiguredError: If ``name`` is unknown.
        """
        if self.registry.has(name):
            return self.registry.resolve(name)
        if name in (None, DEFAULT_FRONTEND_KEY) and self.settings.default_url:
            return self.settings.default_url
        raise FrontendNotConfiguredError(name)

    def url(self, name: str | None = None) -> str:
        """Resolve a frontend's URL, starting the registered servers first.

        Unknown names fail before any server is started.
        """
        url = self.resolve_url(name)
        self.start_all_frontends()
        return url

    def build_url(self, path: str = "/", name: str | None = None) -> str:
        return join_url(self.url(name), path)

    # === Lifecycle ===

    def start_all_frontends(self) -> None:
        self.registry.start_all()

    def reset_all(self) -> None:
        """Stop every server and forget every frontend. Safe to call repeatedly."""
        self.registry.reset()
