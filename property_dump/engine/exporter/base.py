"""Exporter Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class BaseExporter(ABC):
    """Uniform sink contract; ``export`` must be safe to call from many threads."""

    path: Path

    @abstractmethod
    def export(self, record: Any) -> None:
        """Persist a single record as one self-contained unit."""

    @abstractmethod
    def read_existing(self) -> list[Any]:
        """Return the records already present at the destination."""

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "BaseExporter":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = ["BaseExporter"]
