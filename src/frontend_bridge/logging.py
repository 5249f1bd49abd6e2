"""Centralized logging for frontend-bridge (component loggers and console routing)."""

from __future__ import annotations

import logging
from enum import Enum

from tenacity import RetryCallState

from frontend_bridge.utils import PrefixedLogHandler


class BridgeLogComponent(str, Enum):
    """Where a log originated (used for fine-grained filtering)."""

    MARKERS = "markers"
    PROBE = "probe"
    SERVER = "server"
    REGISTRY = "registry"
    PROCESS_CONTROL = "process_control"
    OUTPUT = "output"
    RETRY = "retry"


_COMPONENT_PREFIX: dict[BridgeLogComponent, tuple[str, str]] = {
    BridgeLogComponent.MARKERS: ("[bridge]", "bright_blue"),
    BridgeLogComponent.PROBE: ("[bridge]", "bright_blue"),
    BridgeLogComponent.SERVER: ("[bridge]", "bright_blue"),
    BridgeLogComponent.REGISTRY: ("[bridge]", "bright_blue"),
    BridgeLogComponent.PROCESS_CONTROL: ("[bridge]", "bright_blue"),
    BridgeLogComponent.RETRY: ("[bridge]", "bright_blue"),
    BridgeLogComponent.OUTPUT: ("[ui]", "cyan"),
}

_configured = False


def get_logger(component: BridgeLogComponent) -> logging.Logger:
    """Get the logger for a component (do not call stdlib logging directly)."""
    logger = logging.getLogger(f"frontend_bridge.{component.value}")
    if not _configured and not logger.handlers:
        # Avoid "No handlers could be found" warnings when nothing configured us.
        logger.addHandler(logging.NullHandler())
    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Route every component logger to the rich console with a channel prefix.

    Loggers keep propagating so pytest's log capture still sees the records.
    """
    global _configured
    for component in BridgeLogComponent:
        prefix, color = _COMPONENT_PREFIX[component]
        logger = logging.getLogger(f"frontend_bridge.{component.value}")
        logger.setLevel(level)
        logger.handlers.clear()
        handler = PrefixedLogHandler(prefix, color)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    _configured = True


def reset_logging() -> None:
    """Drop handlers installed by configure_logging."""
    global _configured
    for component in BridgeLogComponent:
        logger = logging.getLogger(f"frontend_bridge.{component.value}")
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
    _configured = False


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Log tenacity retry attempts on the retry component.

    Args:
        retry_state: Tenacity retry state
    """
    logger = get_logger(BridgeLogComponent.RETRY)
    outcome = retry_state.outcome
    if outcome is None:
        return
    if outcome.failed:
        logger.warning(
            f"Attempt {retry_state.attempt_number} failed with error: "
            f"{outcome.exception()}. Retrying..."
        )
    else:
        logger.debug(
            f"Attempt {retry_state.attempt_number} returned {outcome.result()!r}. "
            "Retrying..."
        )
