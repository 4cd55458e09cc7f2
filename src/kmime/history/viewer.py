"""Render the session history as a Rich table, newest first."""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.table import Table

from kmime.history.audit import SessionRecord

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

COLUMNS = (
    ("Timestamp", 20),
    ("New Pod", 30),
    ("Source Pod", 30),
    ("Namespace", 20),
    ("User", 20),
    ("Command", 30),
)


def build_history_table(records: Sequence[SessionRecord]) -> Table:
    """Build a table with one row per record, most recent session on top."""
    table = Table(title="kmime history", border_style="grey50", header_style="bold")
    for title, width in COLUMNS:
        table.add_column(title, max_width=width, overflow="ellipsis", no_wrap=True)
    for record in reversed(records):
        table.add_row(
            record.timestamp.astimezone().strftime(TIMESTAMP_FORMAT),
            record.new_pod_name,
            record.source_pod,
            record.namespace,
            record.user,
            " ".join(record.command),
        )
    return table


def print_history(records: Sequence[SessionRecord], console: Console | None = None) -> None:
    """Print the history table, or a hint when there is nothing to show."""
    c = console or Console()
    if not records:
        c.print("[dim]No kmime sessions recorded yet.[/dim]")
        return
    c.print(build_history_table(records))
