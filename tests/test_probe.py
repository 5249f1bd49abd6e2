"""Tests for the HTTP probes."""

from __future__ import annotations

import httpx
import pytest

from frontend_bridge.probe import FakeProbe, HttpxProbe, ProcessProbe

URL = "http://localhost:5173"


class TestFakeProbe:
    """Tests for the canned-response probe."""

    def test_defaults(self) -> None:
        probe = FakeProbe()
        assert probe.check(URL) == 200
        assert probe.get(URL) == ""

    def test_sequence_then_last_value_repeats(self) -> None:
        probe = FakeProbe().fake_check(URL, 0, 0, 200)
        assert [probe.check(URL) for _ in range(5)] == [0, 0, 200, 200, 200]

    def test_responses_are_per_url(self) -> None:
        probe = FakeProbe().fake_check(URL, 404).fake_get(URL, "<html>", False)
        assert probe.check("http://localhost:3000") == 200
        assert probe.check(URL) == 404
        assert probe.get(URL) == "<html>"
        assert probe.get(URL) is False

    def test_custom_defaults(self) -> None:
        probe = FakeProbe().set_default_check_response(0).set_default_get_response(False)
        assert probe.check(URL) == 0
        assert probe.get(URL) is False

    def test_request_history(self) -> None:
        probe = FakeProbe()
        probe.check(URL, timeout=0.5)
        probe.get(URL)
        probe.get(URL)

        assert probe.was_requested(URL)
        assert probe.request_count(URL) == 3
        assert probe.request_count(URL, "HEAD") == 1
        assert probe.request_count(URL, "GET") == 2
        assert probe.requests[0].timeout == 0.5
        assert not probe.was_requested("http://localhost:1")

        probe.clear_requests()
        assert probe.requests == []

    def test_reset_forgets_everything(self) -> None:
        probe = FakeProbe().fake_check(URL, 500).set_default_get_response("x")
        probe.check(URL)
        probe.reset()

        assert probe.requests == []
        assert probe.check(URL) == 200
        assert probe.get(URL) == ""

    def test_empty_sequence_rejected(self) -> None:
        with pytest.raises(ValueError):
            FakeProbe().fake_check(URL)

    def test_satisfies_protocol(self) -> None:
        assert isinstance(FakeProbe(), ProcessProbe)
        assert isinstance(HttpxProbe(), ProcessProbe)


class TestHttpxProbe:
    """Tests for the httpx-backed probe."""

    def test_check_returns_status(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(302))
        assert HttpxProbe(transport).check(URL) == 302

    def test_check_falls_back_to_get_when_head_unsupported(self) -> None:
        methods: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(405 if request.method == "HEAD" else 200)

        assert HttpxProbe(httpx.MockTransport(handler)).check(URL) == 200
        assert methods == ["HEAD", "GET"]

    def test_check_connection_failure_returns_zero(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert HttpxProbe(httpx.MockTransport(handler)).check(URL) == 0

    def test_get_returns_body(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<div id=app>"))
        assert HttpxProbe(transport).get(URL) == "<div id=app>"

    def test_get_empty_body_is_not_failure(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        assert HttpxProbe(transport).get(URL) == ""

    def test_get_timeout_returns_false(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        assert HttpxProbe(httpx.MockTransport(handler)).get(URL) is False


class TestHttpxProbeTls:
    """The probe talks to HTTPS dev servers with untrusted certificates."""

    def test_check_self_signed_server_is_listening(self, tls_url: str) -> None:
        assert HttpxProbe().check(tls_url, timeout=5.0) == 200

    def test_get_self_signed_server_body(self, tls_url: str) -> None:
        assert HttpxProbe().get(tls_url, timeout=5.0) == "<div id=app></div>"
