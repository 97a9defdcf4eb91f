"""Shared fixtures: stub transports, recorded sleeps and config builders."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest
import structlog

from property_dump.config import HarvestConfig


class StubTransport(httpx.MockTransport):
    """MockTransport that records every request it serves."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _recording(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_recording)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def calls_for(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)


def property_url(identity: str, language: str = "en") -> str:
    return (
        "https://www.tablethotels.com/bear/property_info"
        f"?property={identity}&language={language}&arrival=2026-01-01&los=1&filters=rate"
    )


def property_record(identity: str, **extra: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "query": {"property": [identity], "language": ["en"]},
        "response": {identity: {"name": f"Hotel {identity}"}},
    }
    record.update(extra)
    return record


@pytest.fixture
def make_transport() -> Callable[..., StubTransport]:
    return StubTransport


@pytest.fixture
def echo_transport() -> StubTransport:
    """Answer every property URL with the matching record."""

    def handler(request: httpx.Request) -> httpx.Response:
        identity = request.url.params.get("property")
        return httpx.Response(200, json=property_record(identity))

    return StubTransport(handler)


@pytest.fixture
def recorded_sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps: list[float]) -> Callable[[float], None]:
    return recorded_sleeps.append


@pytest.fixture
def quiet_logger() -> Callable[[str], structlog.BoundLogger]:
    def _factory(locale: str) -> structlog.BoundLogger:
        return structlog.get_logger("property_dump.tests").bind(locale=locale)

    return _factory


@pytest.fixture
def harvest_config() -> Callable[..., HarvestConfig]:
    def _builder(**overrides: Any) -> HarvestConfig:
        base: dict[str, Any] = {
            "locales": ["en"],
            "concurrency": 3,
            "retries": 2,
            "timeout": 5.0,
            "jitter_range": (0.0, 0.0),
            "backoff_base": 0.3,
        }
        base.update(overrides)
        return HarvestConfig(**base)

    return _builder


@pytest.fixture
def write_urls(tmp_path: Path) -> Callable[[str, Iterable[str]], Path]:
    def _write(locale: str, urls: Iterable[str]) -> Path:
        path = tmp_path / "urls" / f"{locale}.txt"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(urls), encoding="utf-8")
        return path

    return _write


def read_ndjson(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


@pytest.fixture
def url_for() -> Callable[..., str]:
    return property_url


@pytest.fixture
def record_for() -> Callable[..., dict[str, Any]]:
    return property_record


@pytest.fixture
def read_dump() -> Callable[[Path], list[dict]]:
    return read_ndjson
