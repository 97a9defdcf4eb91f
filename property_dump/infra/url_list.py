"""Read per-locale URL lists produced by the upstream list generator."""

from __future__ import annotations

from itertools import islice
from pathlib import Path
from typing import Iterable, Iterator


def iter_urls(lines: Iterable[str]) -> Iterator[str]:
    for line in lines:
        url = line.strip()
        if url:
            yield url


def slice_urls(urls: Iterable[str], start: int = 0, limit: int | None = None) -> list[str]:
    """Skip the first ``start`` URLs and keep at most ``limit`` (None keeps all)."""

    if start < 0 or (limit is not None and limit < 0):
        raise ValueError("start and limit must be non-negative")
    stop = None if not limit else start + limit
    return list(islice(urls, start, stop))


def load_urls(path: Path, start: int = 0, limit: int | None = None) -> list[str]:
    with path.open("r", encoding="utf-8") as stream:
        return slice_urls(iter_urls(stream), start, limit)


__all__ = ["iter_urls", "load_urls", "slice_urls"]
