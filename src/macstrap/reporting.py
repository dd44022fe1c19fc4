"""Operator-facing output: status lines, progress bars and the run summary."""
from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .catalog import CatalogItem
from .executor import ProgressStage

if TYPE_CHECKING:
    from .phases import BootstrapReport

BAR_WIDTH = 30

_MARKERS = {
    "info": ("blue", "ℹ️ "),
    "success": ("green", "✅"),
    "warning": ("yellow", "⚠️ "),
    "error": ("red", "❌"),
}

_STAGE_TEXT = {
    "start": "↓ installing",
    "done": "✔︎ installed",
    "failed": "✖ failed",
    "skipped": "✓ already installed",
    "unavailable": "↷ skipped",
}

_STATUS_STYLES = {
    "ok": "green",
    "warning": "yellow",
    "failed": "red",
    "blocked": "magenta",
    "skipped": "dim",
}


def render_bar(pct: int, message: str, *, width: int = BAR_WIDTH) -> str:
    """Return a fixed-width text progress bar such as ``┃███░░┃  60% msg``."""
    pct = max(0, min(100, pct))
    done = width * pct // 100
    return f"┃{'█' * done}{'░' * (width - done)}┃ {pct:3d}% {message}"


class Reporter:
    """Print status lines and progress to a rich console."""

    def __init__(self, console: Console | None = None, *, quiet: bool = False) -> None:
        """Use *console* (a fresh one by default); ``quiet`` drops everything."""
        self.console = console or Console()
        self.quiet = quiet

    def _emit(self, level: str, message: str) -> None:
        if self.quiet:
            return
        style, marker = _MARKERS[level]
        self.console.print(f"[{style}]{marker} {escape(message)}[/{style}]", highlight=False)

    def info(self, message: str) -> None:
        """Print an informational line."""
        self._emit("info", message)

    def success(self, message: str) -> None:
        """Print a success line."""
        self._emit("success", message)

    def warning(self, message: str) -> None:
        """Print a warning line."""
        self._emit("warning", message)

    def error(self, message: str) -> None:
        """Print an error line."""
        self._emit("error", message)

    def progress(self, index: int, total: int, item: CatalogItem, stage: ProgressStage) -> None:
        """Render the batch progress bar for one item transition."""
        if self.quiet:
            return
        pct = index * 100 // total if total else 100
        message = f"{_STAGE_TEXT[stage]} {item.label}"
        self.console.print(f"[blue]{escape(render_bar(pct, message))}[/blue]", highlight=False)

    def banner(self, title: str, lines: list[str]) -> None:
        """Print the welcome banner with a numbered checklist."""
        if self.quiet:
            return
        rule = "=" * 54
        self.console.print(rule)
        self.info(title)
        self.console.print(rule)
        self.warning("You'll be prompted for your password when needed.")
        for number, line in enumerate(lines, start=1):
            self.console.print(f"{number}) {escape(line)}", highlight=False)
        self.console.print()

    def summary(self, report: BootstrapReport) -> None:
        """Render a per-phase table followed by best-effort failures."""
        if self.quiet:
            return
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Phase", style="bold")
        table.add_column("Status")
        table.add_column("Detail")
        for outcome in report.outcomes:
            style = _STATUS_STYLES.get(outcome.status.value, "")
            table.add_row(
                outcome.phase,
                f"[{style}]{outcome.status.value}[/{style}]" if style else outcome.status.value,
                escape(outcome.message),
            )
        self.console.print(table)

        failures = report.item_failures()
        if failures:
            self.warning(f"{len(failures)} item(s) failed:")
            for phase, result in failures:
                detail = escape(result.detail or "failed")
                self.console.print(
                    f"  • {escape(phase)}: {escape(result.item.label)} ({detail})",
                    highlight=False,
                )

    def restore_terminal(self) -> None:
        """Make the cursor visible again after an interrupted run."""
        self.console.show_cursor(True)


__all__ = ["BAR_WIDTH", "Reporter", "render_bar"]
