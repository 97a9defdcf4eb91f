"""Run counters and Rich-based terminal progress."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)


@dataclass
class ProgressCounters:
    """Monotonic per-run counters; observability only, never control flow."""

    total: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.skipped

    def schedule(self, count: int) -> None:
        with self._lock:
            self.total += count

    def record_attempt(self) -> None:
        with self._lock:
            self.attempted += 1

    def record(self, outcome: str) -> int:
        """Count a terminal outcome and return the processed total after it."""

        with self._lock:
            if outcome == "accepted":
                self.succeeded += 1
            elif outcome == "failed":
                self.failed += 1
            elif outcome == "skipped":
                self.skipped += 1
            else:
                raise ValueError(f"unknown outcome: {outcome}")
            return self.succeeded + self.failed + self.skipped

    def as_dict(self) -> dict[str, int]:
        with self._lock:
            return {
                "total": self.total,
                "attempted": self.attempted,
                "succeeded": self.succeeded,
                "failed": self.failed,
                "skipped": self.skipped,
            }


class ProgressReporter:
    """Render a single progress row; silent when disabled or off a TTY."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._label = "harvest"
        self._lock = Lock()

    def set_label(self, label: str) -> None:
        self._label = label

    def start(self, total: int) -> None:
        if not self.enabled:
            return
        console = self._console or Console()
        if not console.is_terminal:
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<8}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            TextColumn("[green]✓{task.fields[ok]:>5}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>5}", justify="right"),
            TextColumn("[yellow]↺{task.fields[skipped]:>5}", justify="right"),
            console=console,
            transient=True,
            refresh_per_second=8,
            expand=True,
        )
        try:
            self._progress.start()
        except LiveError:
            # another Live display owns the console
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            "harvest", total=total, label=self._label, ok=0, failed=0, skipped=0
        )

    def update(self, counters: ProgressCounters) -> None:
        if self._progress is None or self._task_id is None:
            return
        snapshot = counters.as_dict()
        with self._lock:
            self._progress.update(
                self._task_id,
                completed=snapshot["succeeded"] + snapshot["failed"] + snapshot["skipped"],
                ok=snapshot["succeeded"],
                failed=snapshot["failed"],
                skipped=snapshot["skipped"],
            )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        self._task_id = None


__all__ = ["ProgressCounters", "ProgressReporter"]
