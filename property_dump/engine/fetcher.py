"""HTTP fetching with jitter, per-request timeout and linear backoff."""

from __future__ import annotations

import random
import socket
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Union

import httpx
import structlog


class ErrorKind(str, Enum):
    """Classification attached to every failed attempt."""

    HTTP = "HTTP"
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    TIMEOUT = "TIMEOUT"


@dataclass(slots=True)
class FetchSuccess:
    """A 2xx response whose body parsed as JSON."""

    url: str
    payload: Any = field(repr=False)
    status_code: int = 200
    attempts: int = 1


@dataclass(slots=True)
class FetchFailure:
    """Last classified failure for a URL; only ever logged, never persisted."""

    url: str
    kind: ErrorKind
    detail: str = ""
    status_code: int | None = None
    retryable: bool = True
    attempts: int = 1

    @property
    def tag(self) -> str:
        if self.kind is ErrorKind.HTTP:
            return f"HTTP_{self.status_code}"
        return self.kind.value


FetchResult = Union[FetchSuccess, FetchFailure]


class AttemptDeadline:
    """Cap one attempt at ``timeout`` seconds of wall-clock time.

    httpx timeouts apply per connect, read or write, so a server dripping bytes
    can keep a request alive indefinitely. The deadline learns the attempt's
    socket from the httpx ``trace`` extension and shuts it down when the
    timer fires, which unblocks any pending read with a disconnect.
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        self.expired = False
        self._socket: socket.socket | None = None
        self._lock = threading.Lock()
        self._timer = threading.Timer(timeout, self._expire)
        self._timer.daemon = True

    def __enter__(self) -> "AttemptDeadline":
        self._timer.start()
        return self

    def __exit__(self, *_exc: object) -> None:
        self._timer.cancel()

    def trace(self, event: str, info: dict[str, Any]) -> None:
        if event != "connection.connect_tcp.complete":
            return
        stream = info.get("return_value")
        sock = stream.get_extra_info("socket") if stream is not None else None
        with self._lock:
            self._socket = sock
            if self.expired:
                self._shutdown()

    def _expire(self) -> None:
        with self._lock:
            self.expired = True
            self._shutdown()

    def _shutdown(self) -> None:
        if self._socket is None:
            return
        try:
            self._socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            # already closed by httpx
            return


# 403 usually means a durable block but is retried like a transient error
RETRYABLE_STATUSES = frozenset({403, 429})


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRYABLE_STATUSES


class Fetcher:
    """Perform one logical fetch: at most ``1 + max_retries`` attempts per URL."""

    def __init__(
        self,
        headers: Mapping[str, str] | None = None,
        timeout: float = 20.0,
        max_retries: int = 2,
        backoff_base: float = 0.3,
        jitter_range: tuple[float, float] = (0.05, 0.2),
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.jitter_range = jitter_range
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("property_dump.fetcher")
        # httpx.Client is safe to share between worker threads; no keep-alive so
        # every attempt opens a socket its deadline can see
        self._client = httpx.Client(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_keepalive_connections=0),
            headers=self.headers,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def fetch(self, url: str) -> FetchResult:
        attempt = 0
        while True:
            self.jitter()
            result = self._attempt(url)
            result.attempts = attempt + 1
            if isinstance(result, FetchSuccess) or not result.retryable or attempt >= self.max_retries:
                return result
            delay = self.backoff_delay(attempt)
            self.logger.debug(
                "fetch_retry",
                url=url,
                attempt=attempt + 1,
                kind=result.tag,
                delay=round(delay, 3),
            )
            self._pause(delay)
            attempt += 1

    def backoff_delay(self, attempt: int) -> float:
        """Linear backoff: the n-th retry (0-based ``attempt``) waits base * (n + 1)."""

        return self.backoff_base * (attempt + 1)

    def jitter(self) -> None:
        low, high = self.jitter_range
        if high > 0:
            self._pause(random.uniform(low, high))

    # ------------------------------------------------------------------
    def _pause(self, delay: float) -> None:
        if delay > 0:
            self._sleep(delay)

    def _attempt(self, url: str) -> FetchResult:
        deadline = AttemptDeadline(self.timeout)
        try:
            with deadline:
                response = self._client.get(url, extensions={"trace": deadline.trace})
        except httpx.TimeoutException as exc:
            return FetchFailure(url=url, kind=ErrorKind.TIMEOUT, detail=str(exc) or "timed out")
        except httpx.InvalidURL as exc:
            return FetchFailure(url=url, kind=ErrorKind.NETWORK_ERROR, detail=str(exc), retryable=False)
        except httpx.RequestError as exc:
            # covers transport errors, redirect loops and undecodable bodies
            if deadline.expired:
                return FetchFailure(
                    url=url,
                    kind=ErrorKind.TIMEOUT,
                    detail=f"no complete response within {self.timeout}s",
                )
            return FetchFailure(url=url, kind=ErrorKind.NETWORK_ERROR, detail=str(exc) or type(exc).__name__)
        return self._classify(url, response)

    @staticmethod
    def _classify(url: str, response: httpx.Response) -> FetchResult:
        status = response.status_code
        if response.is_success:
            try:
                payload = response.json()
            except ValueError as exc:
                return FetchFailure(
                    url=url,
                    kind=ErrorKind.PARSE_ERROR,
                    detail=str(exc),
                    status_code=status,
                )
            return FetchSuccess(url=url, payload=payload, status_code=status)
        return FetchFailure(
            url=url,
            kind=ErrorKind.HTTP,
            detail=response.reason_phrase,
            status_code=status,
            retryable=is_retryable_status(status),
        )


__all__ = [
    "AttemptDeadline",
    "ErrorKind",
    "FetchFailure",
    "FetchResult",
    "FetchSuccess",
    "Fetcher",
    "is_retryable_status",
]
