"""Report rendering for scan results."""

import json
from datetime import datetime, timedelta, timezone

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..crawler.models import RepoRecord, ScanResult


def format_age(age: timedelta | None) -> str:
    """Render an elapsed time as a short human phrase."""
    if age is None:
        return "no commits"

    seconds = int(age.total_seconds())
    if seconds < 0:
        return "in the future"
    if seconds < 60:
        return "just now"

    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'' if count == 1 else 's'} ago"
    return "just now"


class ReportFormatter:
    """Render a ScanResult as paths, a table, or JSON."""

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        now: datetime | None = None,
    ):
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)
        self.now = now

    def _now(self) -> datetime:
        return self.now or datetime.now(timezone.utc)

    def render_paths(self, result: ScanResult) -> None:
        """One repository path per line, for scripts."""
        for record in result:
            self.console.out(str(record.path), highlight=False)

    def build_table(self, result: ScanResult, full: bool = False) -> Table:
        """Build the report table; ``full`` adds branch, state and remote columns."""
        now = self._now()
        table = Table(title=f"Repositories under {escape(str(result.root))}", title_justify="left")
        table.add_column("Path", overflow="fold")
        table.add_column("Last commit", no_wrap=True)
        if full:
            table.add_column("Committed at", no_wrap=True)
            table.add_column("Branch")
            table.add_column("State")
            table.add_column("Origin", overflow="fold")
            table.add_column("Other remotes", overflow="fold")
            table.add_column("Problems", overflow="fold")

        for record in result:
            row = [escape(str(record.path)), format_age(record.age(now))]
            if full:
                row.extend(self._full_columns(record))
            table.add_row(*row)

        table.caption = f"{len(result)} repositor{'y' if len(result) == 1 else 'ies'}"
        return table

    def _full_columns(self, record: RepoRecord) -> list[str]:
        committed = (
            record.last_commit_time.astimezone().strftime("%Y-%m-%d %H:%M")
            if record.last_commit_time else "-"
        )
        state = "[yellow]dirty[/yellow]" if record.is_dirty else "[green]clean[/green]"
        others = ", ".join(
            f"{name}={url}" for name, url in sorted(record.remotes.items()) if name != "origin"
        )
        problems = escape("; ".join(record.errors))
        return [
            committed,
            escape(record.branch),
            state,
            escape(record.remote_url or "-"),
            escape(others or "-"),
            f"[red]{problems}[/red]" if problems else "-",
        ]

    def render_table(self, result: ScanResult, full: bool = False) -> None:
        self.console.print(self.build_table(result, full=full))

    def to_json(self, result: ScanResult) -> str:
        return json.dumps(result.to_dict(), indent=2, default=str)

    def render_json(self, result: ScanResult) -> None:
        self.console.out(self.to_json(result), highlight=False)

    def render_warning_summary(self, result: ScanResult) -> None:
        """Print a one-line count of scan warnings to stderr.

        Each warning is logged individually when it happens.
        """
        if not result.warnings:
            return
        skipped = sum(1 for w in result.warnings if w.kind != "corrupt_repository")
        corrupt = len({w.path for w in result.warnings if w.kind == "corrupt_repository"})
        parts = []
        if skipped:
            parts.append(f"{skipped} unreadable director{'y' if skipped == 1 else 'ies'} skipped")
        if corrupt:
            parts.append(f"{corrupt} repositor{'y' if corrupt == 1 else 'ies'} partially read")
        self.err_console.print(f"[yellow]Warning:[/yellow] {', '.join(parts)}")
