"""Pydantic models describing a harvest run."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_LOCALES = ["en", "fr", "es", "de", "it", "pt", "ja", "zh"]

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Origin": "https://www.tablethotels.com",
    "Referer": "https://www.tablethotels.com/",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Site": "same-origin",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Dest": "empty",
}


class OutputMode(str, Enum):
    """Output disciplines supported by the sinks."""

    NDJSON = "ndjson"
    ARRAY = "array"

    @property
    def extension(self) -> str:
        return "ndjson" if self is OutputMode.NDJSON else "json"


class HarvestConfig(BaseModel):
    """Every knob of a run, resolved before the orchestrator is built."""

    locales: list[str] = Field(default_factory=lambda: list(DEFAULT_LOCALES))
    concurrency: int = Field(default=3, ge=1)
    retries: int = Field(default=2, ge=0)
    timeout: float = Field(default=20.0, gt=0)
    start: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, ge=0)
    headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))
    identity_param: str = "property"
    output_mode: OutputMode = OutputMode.NDJSON
    jitter_range: tuple[float, float] = (0.05, 0.2)
    backoff_base: float = Field(default=0.3, ge=0)
    progress_every: int = Field(default=100, ge=1)
    fsync: bool = False
    urls_dir: Path = Field(default=Path("urls"))
    dumps_dir: Path = Field(default=Path("dumps"))

    @field_validator("locales", mode="before")
    @classmethod
    def _coerce_locales(cls, value: Any) -> list[str]:
        if value is None:
            return list(DEFAULT_LOCALES)
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            raise ValueError("locales expects a list or a comma-separated string")
        locales = [str(item).strip() for item in value if str(item).strip()]
        if not locales:
            raise ValueError("at least one locale is required")
        return locales

    @field_validator("jitter_range", mode="before")
    @classmethod
    def _coerce_jitter(cls, value: Any) -> tuple[float, float]:
        if value in (None, ""):
            return (0.0, 0.0)
        if isinstance(value, (list, tuple)) and len(value) == 2:
            low, high = float(value[0]), float(value[1])
            if low < 0 or high < 0:
                raise ValueError("jitter_range values must be non-negative")
            if high < low:
                raise ValueError("jitter_range upper bound must be >= lower bound")
            return (low, high)
        raise ValueError("jitter_range expects a two-item list or tuple")

    @field_validator("urls_dir", "dumps_dir", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _normalise_limit(self) -> "HarvestConfig":
        # 0 keeps the historical "no limit" meaning
        if self.limit == 0:
            self.limit = None
        if not self.identity_param.strip():
            raise ValueError("identity_param cannot be empty")
        return self

    def resolved_urls_dir(self, base_dir: Path) -> Path:
        return self.urls_dir if self.urls_dir.is_absolute() else (base_dir / self.urls_dir).resolve()

    def resolved_dumps_dir(self, base_dir: Path) -> Path:
        return self.dumps_dir if self.dumps_dir.is_absolute() else (base_dir / self.dumps_dir).resolve()

    def url_list_path(self, base_dir: Path, locale: str) -> Path:
        return self.resolved_urls_dir(base_dir) / f"{locale}.txt"

    def dump_path(self, base_dir: Path, locale: str) -> Path:
        return self.resolved_dumps_dir(base_dir) / f"{locale}.{self.output_mode.extension}"


__all__ = ["DEFAULT_HEADERS", "DEFAULT_LOCALES", "HarvestConfig", "OutputMode"]
