"""Start, verify and tear down frontend dev servers for end-to-end test suites."""

__version__ = "0.1.0"

from frontend_bridge.bridge import Bridge
from frontend_bridge.definition import ChildFrontend, FrontendDefinition
from frontend_bridge.exceptions import (
    BridgeError,
    DifferentApplicationError,
    FrontendConfigurationError,
    FrontendNotConfiguredError,
    FrontendStartError,
    HttpVerificationError,
    MarkerIOError,
    PortConflictError,
    ProcessExitedError,
    ReadinessTimeoutError,
    SpawnError,
    UnknownProcessError,
)
from frontend_bridge.markers import PortMarker
from frontend_bridge.models import BridgeSettings, MarkerRecord, MarkerStatus, ServerState
from frontend_bridge.probe import FakeProbe, HttpxProbe, ProcessProbe
from frontend_bridge.registry import FrontendRegistry
from frontend_bridge.server import FrontendServer

__all__ = [
    "Bridge",
    "BridgeError",
    "BridgeSettings",
    "ChildFrontend",
    "DifferentApplicationError",
    "FakeProbe",
    "FrontendConfigurationError",
    "FrontendDefinition",
    "FrontendNotConfiguredError",
    "FrontendRegistry",
    "FrontendServer",
    "FrontendStartError",
    "HttpVerificationError",
    "HttpxProbe",
    "MarkerIOError",
    "MarkerRecord",
    "MarkerStatus",
    "PortConflictError",
    "PortMarker",
    "ProcessExitedError",
    "ProcessProbe",
    "ReadinessTimeoutError",
    "ServerState",
    "SpawnError",
    "UnknownProcessError",
    "__version__",
]
