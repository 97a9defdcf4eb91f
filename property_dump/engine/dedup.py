"""Identity index shared by all workers of one run."""

from __future__ import annotations

import json
from pathlib import Path
from threading import Lock
from typing import Any, Iterable

from .identity import DEFAULT_PARAM, identity_from_record


class DedupIndex:
    """Grow-only set of record identities guarded by a lock.

    ``add_if_absent`` is the check-and-insert primitive workers use; calling
    ``contains`` then ``insert`` separately is only race-free from one thread.
    """

    def __init__(self, identities: Iterable[str] | None = None, param: str = DEFAULT_PARAM) -> None:
        self.param = param
        self._ids: set[str] = set(identities or ())
        self._lock = Lock()
        self.seeded_records = 0
        self.seed_errors = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and self.contains(identity)

    def contains(self, identity: str) -> bool:
        with self._lock:
            return identity in self._ids

    def insert(self, identity: str) -> None:
        with self._lock:
            self._ids.add(identity)

    def add_if_absent(self, identity: str) -> bool:
        """Insert ``identity``; return False if it was already known."""

        with self._lock:
            if identity in self._ids:
                return False
            self._ids.add(identity)
            return True

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._ids)

    # ------------------------------------------------------------------
    def seed_records(self, records: Iterable[Any]) -> int:
        """Insert the identity of every parsed record; return how many were added."""

        added = 0
        for record in records:
            self.seeded_records += 1
            identity = identity_from_record(record, self.param)
            if identity is None:
                self.seed_errors += 1
                continue
            if self.add_if_absent(identity):
                added += 1
        return added

    def seed_lines(self, lines: Iterable[str]) -> int:
        """Seed from NDJSON lines, skipping blank and unparseable ones."""

        return self.seed_records(self._parse_lines(lines))

    def _parse_lines(self, lines: Iterable[str]) -> Iterable[Any]:
        for line in lines:
            text = line.strip()
            if not text:
                continue
            try:
                yield json.loads(text)
            except ValueError:
                # typically a line truncated by a killed process
                self.seed_errors += 1

    @classmethod
    def from_ndjson(cls, path: Path, param: str = DEFAULT_PARAM) -> "DedupIndex":
        index = cls(param=param)
        if path.exists():
            with path.open("r", encoding="utf-8", errors="replace") as stream:
                index.seed_lines(stream)
        return index

    @classmethod
    def from_records(cls, records: Iterable[Any], param: str = DEFAULT_PARAM) -> "DedupIndex":
        index = cls(param=param)
        index.seed_records(records)
        return index


__all__ = ["DedupIndex"]
