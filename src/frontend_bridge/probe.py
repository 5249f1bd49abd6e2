"""HTTP readiness probes for frontend servers.

``ProcessProbe`` is the capability the server lifecycle depends on. The
production implementation uses httpx; ``FakeProbe`` answers from canned
per-URL responses and records every request, so lifecycle tests need no
network.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

import httpx

from frontend_bridge.constants import DEFAULT_HTTP_CHECK_TIMEOUT, DEFAULT_HTTP_GET_TIMEOUT
from frontend_bridge.logging import BridgeLogComponent, get_logger
from frontend_bridge.models import ProbeMethod, ProbeRequest


logger = get_logger(BridgeLogComponent.PROBE)


@runtime_checkable
class ProcessProbe(Protocol):
    """Minimal HTTP surface needed to detect and verify a frontend."""

    def check(self, url: str, timeout: float = DEFAULT_HTTP_CHECK_TIMEOUT) -> int:
        """Status code of a lightweight request, or 0 if nothing answered."""
        ...

    def get(self, url: str, timeout: float = DEFAULT_HTTP_GET_TIMEOUT) -> str | bool:
        """Response body, or False if the request failed."""
        ...


class HttpxProbe:
    """ProcessProbe backed by httpx.

    Redirects are not followed: any HTTP answer, 3xx included, proves the
    server is listening. Certificates are not verified, so dev servers with
    self-signed or local-CA certificates count as listening.
    """

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self.transport: httpx.BaseTransport | None = transport

    def check(self, url: str, timeout: float = DEFAULT_HTTP_CHECK_TIMEOUT) -> int:
        try:
            with httpx.Client(
                timeout=timeout,
                follow_redirects=False,
                verify=False,
                transport=self.transport,
            ) as client:
                response = client.head(url)
                # Some dev servers don't implement HEAD.
                if response.status_code in (405, 501):
                    response = client.get(url)
                return response.status_code
        except httpx.HTTPError as e:
            logger.debug(f"HEAD {url} failed: {e}")
            return 0

    def get(self, url: str, timeout: float = DEFAULT_HTTP_GET_TIMEOUT) -> str | bool:
        try:
            with httpx.Client(
                timeout=httpx.Timeout(timeout, connect=max(timeout / 2, 0.1)),
                follow_redirects=True,
                verify=False,
                transport=self.transport,
            ) as client:
                response = client.get(url)
                return response.text
        except httpx.HTTPError as e:
            logger.debug(f"GET {url} failed: {e}")
            return False


class FakeProbe:
    """Deterministic ProcessProbe for tests.

    Responses are configured per URL. A URL may be given a sequence of
    responses which are returned in order; the last one then repeats. URLs
    that were not configured get the defaults (200 / empty body).

    Example:
        >>> probe = FakeProbe().fake_check("http://localhost:5173", 0, 200)
        >>> probe.check("http://localhost:5173")
        0
        >>> probe.check("http://localhost:5173")
        200
    """

    def __init__(self) -> None:
        self._check_responses: dict[str, deque[int]] = {}
        self._get_responses: dict[str, deque[str | bool]] = {}
        self.default_check_response: int = 200
        self.default_get_response: str | bool = ""
        self.requests: list[ProbeRequest] = []

    def fake_check(self, url: str, *status_codes: int) -> FakeProbe:
        """Configure the status code(s) returned by check() for a URL."""
        self._check_responses[url] = self._sequence(status_codes)
        return self

    def fake_get(self, url: str, *bodies: str | bool) -> FakeProbe:
        """Configure the body (or False for failure) returned by get() for a URL."""
        self._get_responses[url] = self._sequence(bodies)
        return self

    def set_default_check_response(self, status_code: int) -> FakeProbe:
        self.default_check_response = status_code
        return self

    def set_default_get_response(self, body: str | bool) -> FakeProbe:
        self.default_get_response = body
        return self

    def was_requested(self, url: str, method: ProbeMethod | None = None) -> bool:
        return self.request_count(url, method) > 0

    def request_count(self, url: str, method: ProbeMethod | None = None) -> int:
        return sum(
            1
            for r in self.requests
            if r.url == url and (method is None or r.method == method)
        )

    def clear_requests(self) -> FakeProbe:
        self.requests.clear()
        return self

    def reset(self) -> FakeProbe:
        """Forget configured responses, defaults and recorded requests."""
        self._check_responses.clear()
        self._get_responses.clear()
        self.default_check_response = 200
        self.default_get_response = ""
        self.requests.clear()
        return self

    def check(self, url: str, timeout: float = DEFAULT_HTTP_CHECK_TIMEOUT) -> int:
        self.requests.append(ProbeRequest(method="HEAD", url=url, timeout=timeout))
        return self._next(self._check_responses.get(url), self.default_check_response)

    def get(self, url: str, timeout: float = DEFAULT_HTTP_GET_TIMEOUT) -> str | bool:
        self.requests.append(ProbeRequest(method="GET", url=url, timeout=timeout))
        return self._next(self._get_responses.get(url), self.default_get_response)

    @staticmethod
    def _sequence(values: Iterable) -> deque:
        queue = deque(values)
        if not queue:
            raise ValueError("at least one response is required")
        return queue

    @staticmethod
    def _next(queue: deque | None, default):
        if not queue:
            return default
        if len(queue) > 1:
            return queue.popleft()
        return queue[0]
