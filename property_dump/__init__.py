"""property-dump: resumable per-locale JSON dump harvester."""

__version__ = "0.1.0"

__all__ = ["__version__"]
