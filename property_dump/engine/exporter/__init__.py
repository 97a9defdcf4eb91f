"""Exporter SPI and implementations."""

from pathlib import Path

from ...config import OutputMode
from .array_exporter import ArrayExporter
from .base import BaseExporter
from .ndjson_exporter import NdjsonExporter, iter_ndjson


def open_exporter(path: Path, mode: OutputMode, fsync: bool = False) -> BaseExporter:
    """Open the sink matching ``mode``; one discipline per destination."""

    if mode is OutputMode.ARRAY:
        return ArrayExporter(path)
    return NdjsonExporter(path, fsync=fsync)


__all__ = ["ArrayExporter", "BaseExporter", "NdjsonExporter", "iter_ndjson", "open_exporter"]
