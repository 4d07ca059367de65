"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from ..engine.records import ExtractedRecord


@dataclass
class ProgressState:
    total: int | None
    success: int = 0
    failed: int = 0
    current_url: str | None = None
    failures: dict[str, int] = field(default_factory=dict)
    last_failure: str | None = None

    @property
    def completed(self) -> int:
        return self.success + self.failed


class RateColumn(ProgressColumn):
    """Render throughput as ``X.X url/s``."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.1f} url/s", style="progress.percentage")


class ProgressReporter:
    """Render progress and maintain counters for CLI feedback.

    Falls back to silent counting when disabled or when stdout is not a
    terminal, so the counters stay usable in scripts and tests.
    """

    def __init__(
        self,
        enabled: bool = True,
        console: Console | None = None,
        max_url_length: int = 60,
    ) -> None:
        self.enabled = enabled
        self.max_url_length = max_url_length
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._lock = Lock()
        self.state: ProgressState | None = None
        self._label = "batch"

    def set_label(self, label: str) -> None:
        self._label = label
        if self._progress is not None and self._task_id is not None:
            self._progress.update(self._task_id, label=label)

    def start(self, total: int | None) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
        if not self._console.is_terminal:
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<12}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            RateColumn(),
            TextColumn("[green]✓{task.fields[success]:>4}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>4}", justify="right"),
            TextColumn("[yellow]{task.fields[last_failure]:<11}", justify="left"),
            TextColumn("[dim]{task.fields[current_url]}", justify="left"),
            refresh_per_second=10,
            expand=True,
            transient=True,
            console=self._console,
        )
        try:
            self._progress.start()
        except LiveError:
            # Another live display owns the console; keep counting silently.
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            "fetch",
            total=total,
            label=self._label,
            success=0,
            failed=0,
            last_failure="",
            current_url="waiting…",
        )

    def advance(
        self,
        success: bool = False,
        failed: bool = False,
        current_url: str | None = None,
        reason: str | None = None,
    ) -> None:
        if not self.state:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        with self._lock:
            if current_url:
                self.state.current_url = current_url
            if success:
                self.state.success += 1
            if failed:
                self.state.failed += 1
                if reason:
                    self.state.failures[reason] = self.state.failures.get(reason, 0) + 1
                    self.state.last_failure = reason
            if self._progress is not None and self._task_id is not None:
                self._progress.update(
                    self._task_id,
                    advance=1,
                    success=self.state.success,
                    failed=self.state.failed,
                    last_failure=self.state.last_failure or "",
                    current_url=self._shorten(self.state.current_url or ""),
                )

    def on_record(self, completed: int, record: ExtractedRecord) -> None:
        """Progress callback signature expected by ``FetchExtractPool``."""

        self.advance(
            success=record.ok,
            failed=not record.ok,
            current_url=record.url,
            reason=record.error.value if record.error else None,
        )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        self._task_id = None

    def failure_breakdown(self) -> dict[str, int]:
        if not self.state:
            return {}
        return dict(self.state.failures)

    def summary(self) -> dict[str, int]:
        if not self.state:
            return {"success": 0, "failed": 0}
        return {"success": self.state.success, "failed": self.state.failed}

    def _shorten(self, url: str) -> str:
        if len(url) > self.max_url_length:
            return url[: self.max_url_length - 3] + "..."
        return url


__all__ = ["ProgressReporter", "ProgressState", "RateColumn"]
