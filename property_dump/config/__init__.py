"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository, apply_overrides
from .models import DEFAULT_HEADERS, DEFAULT_LOCALES, HarvestConfig, OutputMode

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_HEADERS",
    "DEFAULT_LOCALES",
    "HarvestConfig",
    "OutputMode",
    "apply_overrides",
]
