from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from dbrecord.domain.errors import ErrorList, Media

if TYPE_CHECKING:
    from dbrecord.domain.record import Record


def print_record(record: "Record", console: Optional[Console] = None) -> None:
    """
    Render one record as a two-column table of field labels and values.
    """
    console = console or Console()
    table = Table(
        title=f"{record.schema.name} #{record.pk}",
        box=box.ROUNDED,
        show_header=False,
    )
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    for name in record.fields:
        field = record.fields[name]
        table.add_row(field.desc_short, field.output(Media.TEXT))

    console.print(table)


def print_records(
    records: Iterable["Record"],
    columns: Optional[List[str]] = None,
    title: Optional[str] = None,
    console: Optional[Console] = None,
) -> int:
    """
    Render records as rows of a rich table.

    Columns default to the fields loaded on the first record. Returns the
    number of rows printed.
    """
    console = console or Console()
    rows: List[List[str]] = []
    header: Optional[List[str]] = list(columns) if columns else None
    pk_name = "id"

    for record in records:
        pk_name = record.schema.pk
        if header is None:
            header = list(record.fields)
        rows.append(
            [str(record.pk)]
            + [record.fields[name].text_display() if name in record.fields else "" for name in header]
        )

    if not rows:
        console.print("[yellow]No records to display.[/yellow]")
        return 0

    table = Table(title=title, box=box.ROUNDED, caption=f"{len(rows)} record(s)")
    table.add_column(pk_name, style="magenta", justify="right", no_wrap=True)
    for name in header or []:
        table.add_column(name, style="cyan")
    for row in rows:
        table.add_row(*row)

    console.print(table)
    return len(rows)


def print_errors(errors: ErrorList, console: Optional[Console] = None) -> None:
    """Print accumulated errors in red, one per line."""
    console = console or Console(stderr=True)
    for message in errors.render(Media.TEXT):
        console.print(f"[red]{message}[/red]")


__all__ = ["print_errors", "print_record", "print_records"]
