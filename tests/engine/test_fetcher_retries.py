from __future__ import annotations

import socket
import threading
import time

import httpx
import pytest

from property_dump.engine.fetcher import ErrorKind, FetchFailure, FetchSuccess, Fetcher, is_retryable_status

URL = "https://www.tablethotels.com/bear/property_info?property=42&language=en"


def build_fetcher(transport, sleep, **overrides) -> Fetcher:
    options = {
        "headers": {"User-Agent": "UA-test", "Origin": "https://www.tablethotels.com"},
        "timeout": 5.0,
        "max_retries": 2,
        "backoff_base": 0.3,
        "jitter_range": (0.0, 0.0),
        "transport": transport,
        "sleep": sleep,
    }
    options.update(overrides)
    return Fetcher(**options)


def test_fetch_success_sends_configured_headers(make_transport, fake_sleep, record_for) -> None:
    transport = make_transport(lambda request: httpx.Response(200, json=record_for("42")))
    with build_fetcher(transport, fake_sleep) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchSuccess)
    assert result.payload == record_for("42")
    assert result.attempts == 1
    sent = transport.requests[0]
    assert sent.headers["User-Agent"] == "UA-test"
    assert sent.headers["Origin"] == "https://www.tablethotels.com"


def test_two_server_errors_then_success_waits_linear_backoff(make_transport, fake_sleep, recorded_sleeps, record_for) -> None:
    statuses = iter([500, 500])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses, 200)
        if status == 200:
            return httpx.Response(200, json=record_for("42"))
        return httpx.Response(status)

    transport = make_transport(handler)
    with build_fetcher(transport, fake_sleep) as fetcher:
        result = fetcher.fetch(URL)

    assert isinstance(result, FetchSuccess)
    assert result.attempts == 3
    assert transport.calls == 3
    assert recorded_sleeps == pytest.approx([0.3, 0.6])
    assert sum(recorded_sleeps) >= 0.3 * 1 + 0.3 * 2 - 1e-9


@pytest.mark.parametrize("status", [500, 502, 503, 429, 403])
def test_retryable_status_exhausts_attempt_budget(make_transport, fake_sleep, status: int) -> None:
    transport = make_transport(lambda request: httpx.Response(status))
    with build_fetcher(transport, fake_sleep, max_retries=3) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchFailure)
    assert result.tag == f"HTTP_{status}"
    assert result.attempts == 4
    assert transport.calls == 4


@pytest.mark.parametrize("status", [400, 401, 404, 410])
def test_non_retryable_status_makes_exactly_one_attempt(make_transport, fake_sleep, recorded_sleeps, status: int) -> None:
    transport = make_transport(lambda request: httpx.Response(status))
    with build_fetcher(transport, fake_sleep) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchFailure)
    assert result.kind is ErrorKind.HTTP
    assert result.tag == f"HTTP_{status}"
    assert result.retryable is False
    assert transport.calls == 1
    assert recorded_sleeps == []


def test_zero_retries_means_single_attempt(make_transport, fake_sleep) -> None:
    transport = make_transport(lambda request: httpx.Response(503))
    with build_fetcher(transport, fake_sleep, max_retries=0) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchFailure)
    assert transport.calls == 1


def test_timeout_is_retryable_and_classified(make_transport, fake_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    transport = make_transport(handler)
    with build_fetcher(transport, fake_sleep, max_retries=1) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchFailure)
    assert result.kind is ErrorKind.TIMEOUT
    assert result.tag == "TIMEOUT"
    assert result.url == URL
    assert transport.calls == 2


def test_network_error_recovers(make_transport, fake_sleep, record_for) -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=record_for("42"))

    transport = make_transport(handler)
    with build_fetcher(transport, fake_sleep) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchSuccess)
    assert result.attempts == 2


def test_network_error_exhausted_reports_last_failure(make_transport, fake_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = make_transport(handler)
    with build_fetcher(transport, fake_sleep) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchFailure)
    assert result.tag == "NETWORK_ERROR"
    assert "connection refused" in result.detail
    assert result.attempts == 3


def test_unparseable_body_is_retried_as_parse_error(make_transport, fake_sleep) -> None:
    transport = make_transport(lambda request: httpx.Response(200, text="<html>blocked</html>"))
    with build_fetcher(transport, fake_sleep) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchFailure)
    assert result.kind is ErrorKind.PARSE_ERROR
    assert result.tag == "PARSE_ERROR"
    assert transport.calls == 3


def test_redirects_are_followed(make_transport, fake_sleep, record_for) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(302, headers={"Location": "https://example.com/new?property=42"})
        return httpx.Response(200, json=record_for("42"))

    transport = make_transport(handler)
    with build_fetcher(transport, fake_sleep) as fetcher:
        result = fetcher.fetch("https://example.com/old?property=42")
    assert isinstance(result, FetchSuccess)
    assert transport.calls == 2


def test_jitter_sleeps_within_range_before_each_attempt(make_transport, fake_sleep, recorded_sleeps, monkeypatch) -> None:
    monkeypatch.setattr("property_dump.engine.fetcher.random.uniform", lambda low, high: (low + high) / 2)
    transport = make_transport(lambda request: httpx.Response(404))
    with build_fetcher(transport, fake_sleep, jitter_range=(0.05, 0.2)) as fetcher:
        fetcher.fetch(URL)
    assert recorded_sleeps == pytest.approx([0.125])


def test_backoff_delay_is_linear() -> None:
    fetcher = Fetcher(backoff_base=0.5, jitter_range=(0.0, 0.0))
    try:
        assert [fetcher.backoff_delay(n) for n in range(3)] == [0.5, 1.0, 1.5]
    finally:
        fetcher.close()


def test_invalid_arguments_rejected() -> None:
    with pytest.raises(ValueError):
        Fetcher(max_retries=-1)
    with pytest.raises(ValueError):
        Fetcher(timeout=0)


def test_retryable_status_table() -> None:
    assert is_retryable_status(500)
    assert is_retryable_status(599)
    assert is_retryable_status(429)
    assert is_retryable_status(403)
    assert not is_retryable_status(404)
    assert not is_retryable_status(401)


def test_redirect_loop_is_a_retryable_network_error(make_transport, fake_sleep) -> None:
    transport = make_transport(lambda request: httpx.Response(302, headers={"Location": str(request.url)}))
    with build_fetcher(transport, fake_sleep, max_retries=1) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchFailure)
    assert result.kind is ErrorKind.NETWORK_ERROR
    assert result.retryable is True
    assert result.attempts == 2


def test_undecodable_body_is_a_network_error(make_transport, fake_sleep) -> None:
    transport = make_transport(
        lambda request: httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip")
    )
    with build_fetcher(transport, fake_sleep, max_retries=0) as fetcher:
        result = fetcher.fetch(URL)
    assert isinstance(result, FetchFailure)
    assert result.tag == "NETWORK_ERROR"


@pytest.fixture
def dripping_server():
    """Local server that sends response header bytes one at a time, forever."""

    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    stop = threading.Event()

    def serve() -> None:
        conn, _ = listener.accept()
        with conn:
            payload = b"HTTP/1.1 200 OK\r\n" + b"X-Drip: a\r\n" * 1000
            for byte in payload:
                if stop.is_set():
                    return
                try:
                    conn.sendall(bytes([byte]))
                except OSError:
                    return
                time.sleep(0.05)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    host, port = listener.getsockname()
    yield f"http://{host}:{port}/bear/property_info?property=42"
    stop.set()
    listener.close()


def test_slow_headers_hit_the_attempt_deadline(dripping_server, fake_sleep, monkeypatch) -> None:
    for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    fetcher = Fetcher(timeout=0.5, max_retries=0, jitter_range=(0.0, 0.0), sleep=fake_sleep)
    started = time.monotonic()
    with fetcher:
        result = fetcher.fetch(dripping_server)
    elapsed = time.monotonic() - started

    assert isinstance(result, FetchFailure)
    assert result.kind is ErrorKind.TIMEOUT
    assert elapsed < 3.0
