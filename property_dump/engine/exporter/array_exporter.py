"""Batch exporter rewriting a JSON array document atomically."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any

from .base import BaseExporter


class ArrayExporter(BaseExporter):
    """Merge new records into an existing array and replace the file on flush.

    Nothing reaches disk until ``flush``/``close``; a crash mid-run loses the
    records accumulated since the last flush.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._records: list[Any] = self.read_existing()
        self._dirty = False
        self._closed = False
        self.written = 0

    def read_existing(self) -> list[Any]:
        if not self.path.exists():
            return []
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return []
        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError(f"Batch destination must hold a JSON array: {self.path}")
        return data

    def export(self, record: Any) -> None:
        with self._lock:
            if self._closed:
                raise ValueError(f"exporter for {self.path} is closed")
            self._records.append(record)
            self._dirty = True
            self.written += 1

    def flush(self) -> None:
        with self._lock:
            if self._dirty:
                self._write_atomic()
                self._dirty = False

    def close(self) -> None:
        self.flush()
        with self._lock:
            self._closed = True

    def _write_atomic(self) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as stream:
                json.dump(self._records, stream, ensure_ascii=False)
                stream.flush()
                os.fsync(stream.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


__all__ = ["ArrayExporter"]
