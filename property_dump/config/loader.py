"""Configuration loading helpers for property-dump."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import HarvestConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_STEM = "harvest"
HOME_ENV_VAR = "PROPERTY_DUMP_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve the project home and the directories hanging off it."""

    project_root: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV_VAR)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path.cwd()).resolve()
        self.project_root = root
        self.logs_dir = (root / "logs").resolve()

    def config_path(self) -> Path:
        for suffix in CONFIG_EXTENSIONS:
            candidate = self.project_root / f"{CONFIG_STEM}{suffix}"
            if candidate.exists():
                return candidate
        return self.project_root / f"{CONFIG_STEM}{CONFIG_EXTENSIONS[0]}"


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: HarvestConfig | None = None

    @property
    def home(self) -> Path:
        return self.locator.project_root

    def load(self) -> HarvestConfig:
        if self._cache is not None:
            return self._cache
        path = self.locator.config_path()
        if path.exists():
            config = HarvestConfig.model_validate(_read_file(path))
        else:
            config = HarvestConfig()
            self.save(config)
        self._cache = config
        return config

    def save(self, config: HarvestConfig) -> Path:
        path = self.locator.config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        _write_file(path, config.model_dump(mode="json"))
        self._cache = config
        return path


def apply_overrides(config: HarvestConfig, **overrides: object) -> HarvestConfig:
    """Return a re-validated copy with every non-None override applied."""

    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return config
    payload = config.model_dump()
    payload.update(updates)
    return HarvestConfig.model_validate(payload)


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "HOME_ENV_VAR", "apply_overrides"]
