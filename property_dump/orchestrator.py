"""Run orchestrator wiring URL lists, fetching, dedup, export and progress."""

from __future__ import annotations

import queue
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

import httpx
import structlog

from .config import HarvestConfig, OutputMode
from .engine import DedupIndex, FetchFailure, Fetcher, WorkerPool, identity_from_record, identity_from_url
from .engine.exporter import BaseExporter, open_exporter
from .infra import load_urls
from .logging_conf import locale_logger
from .ui import ProgressCounters, ProgressReporter


class HarvestSetupError(RuntimeError):
    """Unrecoverable problem preparing a run; aborts every remaining locale."""


class ItemOutcome(str, Enum):
    """Terminal state of one work item."""

    ACCEPTED = "accepted"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    MISSING_IDENTITY = "missing_identity"
    FAILED = "failed"

    @property
    def counter(self) -> str:
        if self is ItemOutcome.ACCEPTED:
            return "accepted"
        if self is ItemOutcome.FAILED:
            return "failed"
        return "skipped"


@dataclass(slots=True)
class RunSummary:
    """Totals for one locale."""

    locale: str
    status: str = "done"
    scheduled: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    filtered: int = 0
    known: int = 0
    output_path: Path | None = None


def filter_pending(
    urls: Iterable[str], index: DedupIndex, param: str = "property"
) -> tuple[list[str], int]:
    """Drop URLs without an identity or whose identity is already persisted."""

    pending: list[str] = []
    filtered = 0
    for url in urls:
        identity = identity_from_url(url, param)
        if identity is None or index.contains(identity):
            filtered += 1
            continue
        pending.append(url)
    return pending, filtered


class Orchestrator:
    """Drive one bounded worker pool per locale over its pending URLs."""

    def __init__(
        self,
        config: HarvestConfig,
        home: Path,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        progress_enabled: bool = False,
        logger_factory: Callable[[str], structlog.BoundLogger] | None = None,
    ) -> None:
        self.config = config
        self.home = home
        self.transport = transport
        self.sleep = sleep
        self.progress_enabled = progress_enabled
        self._logger_factory = logger_factory or (
            lambda locale: locale_logger(locale, log_dir=self.home / "logs")
        )

    # ------------------------------------------------------------------
    def run_all(self, locales: Iterable[str] | None = None) -> list[RunSummary]:
        self._ensure_dumps_dir()
        return [self.run_locale(locale) for locale in (locales or self.config.locales)]

    def run_locale(self, locale: str) -> RunSummary:
        log = self._logger_factory(locale)
        summary = RunSummary(locale=locale)
        list_path = self.config.url_list_path(self.home, locale)
        if not list_path.exists():
            log.warning("locale_skipped", reason="missing_url_list", path=str(list_path))
            summary.status = "missing_input"
            return summary

        urls = load_urls(list_path, self.config.start, self.config.limit)
        self._ensure_dumps_dir()
        dump_path = self.config.dump_path(self.home, locale)
        summary.output_path = dump_path
        sink = self._open_sink(dump_path)
        try:
            index = self._seed_index(sink)
            pending, summary.filtered = filter_pending(urls, index, self.config.identity_param)
            summary.known = len(index)
            log.info(
                "locale_start",
                pending=len(pending),
                known=summary.known,
                filtered=summary.filtered,
                seed_errors=index.seed_errors,
            )
            if not pending:
                log.info("nothing_to_do")
                summary.status = "nothing_to_do"
                return summary
            with self._build_fetcher(log) as fetcher:
                counters = self.harvest(pending, fetcher, index, sink, log, label=locale)
        finally:
            sink.close()

        totals = counters.as_dict()
        summary.scheduled = totals["total"]
        summary.attempted = totals["attempted"]
        summary.succeeded = totals["succeeded"]
        summary.failed = totals["failed"]
        summary.skipped = totals["skipped"]
        log.info("locale_done", output=str(dump_path), **totals)
        return summary

    def harvest(
        self,
        urls: list[str],
        fetcher: Fetcher,
        index: DedupIndex,
        sink: BaseExporter,
        log: structlog.BoundLogger,
        label: str = "harvest",
    ) -> ProgressCounters:
        """Fetch every URL once through a bounded pool; return the final counters."""

        work: queue.Queue[str] = queue.Queue()
        for url in urls:
            work.put(url)
        counters = ProgressCounters()
        counters.schedule(len(urls))
        progress = ProgressReporter(enabled=self.progress_enabled)
        progress.set_label(label)
        progress.start(total=len(urls))
        every = self.config.progress_every

        def worker(worker_id: int) -> int:
            handled = 0
            while True:
                try:
                    url = work.get_nowait()
                except queue.Empty:
                    return handled
                outcome = self._process(url, fetcher, index, sink, counters, log)
                processed = counters.record(outcome.counter)
                handled += 1
                progress.update(counters)
                if processed % every == 0:
                    log.info("progress", processed=processed, **counters.as_dict())
                fetcher.jitter()

        try:
            if urls:
                WorkerPool(self.config.concurrency, thread_name_prefix=f"harvest-{label}").run(
                    worker, len(urls)
                )
        finally:
            progress.close()
            sink.flush()
        return counters

    def _process(
        self,
        url: str,
        fetcher: Fetcher,
        index: DedupIndex,
        sink: BaseExporter,
        counters: ProgressCounters,
        log: structlog.BoundLogger,
    ) -> ItemOutcome:
        counters.record_attempt()
        try:
            result = fetcher.fetch(url)
        except Exception as exc:  # noqa: BLE001
            log.error("worker_item_error", url=url, error=str(exc))
            return ItemOutcome.FAILED
        if isinstance(result, FetchFailure):
            log.warning(
                "fetch_failed",
                kind=result.tag,
                url=url,
                detail=result.detail,
                attempts=result.attempts,
            )
            return ItemOutcome.FAILED

        identity = identity_from_record(result.payload, self.config.identity_param)
        if identity is None:
            log.info("missing_identity", url=url)
            return ItemOutcome.MISSING_IDENTITY
        if not index.add_if_absent(identity):
            log.info("duplicate_skipped", url=url, identity=identity)
            return ItemOutcome.DUPLICATE_SKIPPED
        try:
            sink.export(result.payload)
        except (OSError, ValueError, TypeError) as exc:
            log.error("export_failed", url=url, identity=identity, error=str(exc))
            return ItemOutcome.FAILED
        return ItemOutcome.ACCEPTED

    # ------------------------------------------------------------------
    def _build_fetcher(self, log: structlog.BoundLogger) -> Fetcher:
        return Fetcher(
            headers=self.config.headers,
            timeout=self.config.timeout,
            max_retries=self.config.retries,
            backoff_base=self.config.backoff_base,
            jitter_range=self.config.jitter_range,
            transport=self.transport,
            sleep=self.sleep,
            logger=log,
        )

    def _ensure_dumps_dir(self) -> None:
        dumps_dir = self.config.resolved_dumps_dir(self.home)
        try:
            dumps_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise HarvestSetupError(f"cannot create dumps directory {dumps_dir}: {exc}") from exc

    def _open_sink(self, path: Path) -> BaseExporter:
        try:
            return open_exporter(path, self.config.output_mode, fsync=self.config.fsync)
        except (OSError, ValueError) as exc:
            raise HarvestSetupError(f"cannot open destination {path}: {exc}") from exc

    def _seed_index(self, sink: BaseExporter) -> DedupIndex:
        param = self.config.identity_param
        if self.config.output_mode is OutputMode.NDJSON:
            return DedupIndex.from_ndjson(sink.path, param)
        return DedupIndex.from_records(sink.read_existing(), param)


__all__ = [
    "HarvestSetupError",
    "ItemOutcome",
    "Orchestrator",
    "RunSummary",
    "filter_pending",
]
