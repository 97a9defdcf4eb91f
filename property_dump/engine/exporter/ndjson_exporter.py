"""Append-only NDJSON exporter: one JSON document per line."""

from __future__ import annotations

import json
import os
from pathlib import Path
from threading import Lock
from typing import Any, Iterator

from .base import BaseExporter


def iter_ndjson(path: Path) -> Iterator[Any]:
    """Yield every parseable record of an NDJSON file, skipping broken lines."""

    if not path.exists():
        return
    with path.open("r", encoding="utf-8", errors="replace") as stream:
        for line in stream:
            text = line.strip()
            if not text:
                continue
            try:
                yield json.loads(text)
            except ValueError:
                continue


class NdjsonExporter(BaseExporter):
    """Accumulating sink; every ``export`` is one complete, flushed line."""

    def __init__(self, path: Path, fsync: bool = False) -> None:
        self.path = path
        self.fsync = fsync
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._terminate_partial_line()
        self._file = self.path.open("a", encoding="utf-8", newline="\n")
        self.written = 0

    def _terminate_partial_line(self) -> None:
        if not self.path.exists() or self.path.stat().st_size == 0:
            return
        with self.path.open("rb+") as stream:
            stream.seek(-1, os.SEEK_END)
            if stream.read(1) != b"\n":
                stream.write(b"\n")

    def export(self, record: Any) -> None:
        line = json.dumps(record, ensure_ascii=False) + "\n"
        with self._lock:
            if self._file.closed:
                raise ValueError(f"exporter for {self.path} is closed")
            self._file.write(line)
            self._file.flush()
            if self.fsync:
                os.fsync(self._file.fileno())
            self.written += 1

    def read_existing(self) -> list[Any]:
        return list(iter_ndjson(self.path))

    def flush(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.flush()

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.flush()
                self._file.close()


__all__ = ["NdjsonExporter", "iter_ndjson"]
