"""Engine components: identity → fetch → dedup → export."""

from .dedup import DedupIndex
from .fetcher import ErrorKind, FetchFailure, FetchResult, FetchSuccess, Fetcher
from .identity import identity_from_record, identity_from_url
from .worker_pool import WorkerPool

__all__ = [
    "DedupIndex",
    "ErrorKind",
    "FetchFailure",
    "FetchResult",
    "FetchSuccess",
    "Fetcher",
    "WorkerPool",
    "identity_from_record",
    "identity_from_url",
]
