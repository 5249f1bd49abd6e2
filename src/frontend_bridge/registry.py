"""Coordination of every frontend registered for one test run."""

from __future__ import annotations

from frontend_bridge.constants import DEFAULT_FRONTEND_KEY
from frontend_bridge.definition import FrontendDefinition
from frontend_bridge.exceptions import (
    FrontendConfigurationError,
    FrontendNotConfiguredError,
)
from frontend_bridge.logging import BridgeLogComponent, get_logger
from frontend_bridge.markers import PortMarker
from frontend_bridge.models import BackendUrl, BridgeSettings
from frontend_bridge.probe import HttpxProbe, ProcessProbe
from frontend_bridge.server import FrontendServer
from frontend_bridge.spawner import ProcessSpawner


logger = get_logger(BridgeLogComponent.REGISTRY)

ServerKey = tuple[str, str]


class FrontendRegistry:
    """Holds the registered definitions and the servers built for them.

    Servers are created lazily by ``start_all()``, one per distinct
    (serve command, working directory), so several names pointing at the
    same dev server never spawn it twice. Child frontends resolve through
    their parent and never get a server of their own.
    """

    def __init__(
        self,
        *,
        settings: BridgeSettings | None = None,
        probe: ProcessProbe | None = None,
        spawner: ProcessSpawner | None = None,
        markers: PortMarker | None = None,
    ):
        self.settings: BridgeSettings = settings or BridgeSettings()
        self.probe: ProcessProbe = probe or HttpxProbe()
        self.spawner: ProcessSpawner | None = spawner
        self.markers: PortMarker = markers or PortMarker(self.settings.marker_dir)
        self.backend_url: BackendUrl | None = self.settings.backend_url
        self.definitions: dict[str, FrontendDefinition] = {}
        self.servers: dict[str, FrontendServer] = {}
        self.started: bool = False
        self._shared: dict[ServerKey, FrontendServer] = {}

    def register(self, definition: FrontendDefinition) -> FrontendDefinition:
        """Store a definition under its name, replacing any previous one."""
        key = definition.key
        if key in self.definitions:
            logger.debug(f"Replacing frontend definition '{key}'")
        self.definitions[key] = definition
        return definition

    def get(self, name: str | None = None) -> FrontendDefinition | None:
        return self.definitions.get(name if name is not None else DEFAULT_FRONTEND_KEY)

    def has(self, name: str | None = None) -> bool:
        """True if ``name`` is a registered frontend or child."""
        key = name if name is not None else DEFAULT_FRONTEND_KEY
        return key in self.definitions or key in self._children()

    def has_servers(self) -> bool:
        """True if any registered definition has a serve command."""
        return any(d.has_serve_command() for d in self.definitions.values())

    def resolve(self, name: str | None = None) -> str:
        """The URL for a frontend or child name.

        Raises:
            FrontendNotConfiguredError: If nothing is registered under ``name``.
        """
        key = name if name is not None else DEFAULT_FRONTEND_KEY
        definition = self.definitions.get(key)
        if definition is not None:
            return definition.url
        child = self._children().get(key)
        if child is not None:
            parent, path = child
            return parent.child_url(path)
        raise FrontendNotConfiguredError(name)

    def _children(self) -> dict[str, tuple[FrontendDefinition, str]]:
        # Children are added fluently after register(), so index them on demand.
        index: dict[str, tuple[FrontendDefinition, str]] = {}
        for definition in self.definitions.values():
            for child in definition.children:
                if child.name in self.definitions or child.name in index:
                    raise FrontendConfigurationError(
                        f"Frontend name '{child.name}' is used more than once"
                    )
                index[child.name] = (definition, child.path)
        return index

    # === Lifecycle ===

    def start_all(self) -> None:
        """Start every server in registration order. No-op once started.

        On failure ``started`` stays False; servers that did reach READY are
        kept so a later call only retries the rest.
        """
        if self.started:
            return

        self._children()
        for key, definition in self.definitions.items():
            server = self._server_for(definition)
            if server is not None:
                self.servers[key] = server

        for server in self._unique_servers():
            server.start()
        self.started = True
        logger.debug(f"Started {len(self._shared)} frontend server(s)")

    def stop_all(self) -> None:
        """Stop and forget every server. Definitions are kept. Never raises."""
        for server in self._unique_servers():
            try:
                server.stop()
            except Exception as e:
                logger.error(f"Failed to stop {server!r}: {e}")
        self.servers.clear()
        self._shared.clear()
        self.started = False

    def reset(self) -> None:
        """Stop every server, then forget all definitions. Never raises."""
        self.stop_all()
        self.definitions.clear()

    def _unique_servers(self) -> list[FrontendServer]:
        return list(self._shared.values())

    def _server_for(self, definition: FrontendDefinition) -> FrontendServer | None:
        if definition.server_key is not None:
            key: ServerKey = definition.server_key
        elif definition.trust_existing:
            key = ("", definition.url)
        else:
            return None
        server = self._shared.get(key)
        if server is None:
            server = self._build_server(definition)
            self._shared[key] = server
        return server

    def _build_server(self, definition: FrontendDefinition) -> FrontendServer:
        return FrontendServer(
            definition,
            probe=self.probe,
            spawner=self.spawner,
            markers=self.markers,
            settings=self.settings,
            backend_url=self._current_backend_url,
        )

    def _current_backend_url(self) -> str:
        backend_url: BackendUrl | None = self.backend_url
        if callable(backend_url):
            backend_url = backend_url()
        return backend_url or ""
