from __future__ import annotations

import sys
from typing import List, Optional

import typer

from dbrecord.config import get_settings
from dbrecord.dialects import available_dialects
from dbrecord.domain.errors import ConfigurationError, ErrorList
from dbrecord.domain.schema import import_table_class
from dbrecord.infrastructure.db_factory import DedicatedLogin
from dbrecord.reporter import print_errors, print_record, print_records
from dbrecord.utils.logging import configure_logging

app = typer.Typer(help="dbrecord CLI: inspect tables declared as Record classes.")


def _table(reference: str):
    try:
        return import_table_class(reference)
    except ConfigurationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)


def _setup() -> DedicatedLogin:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return DedicatedLogin(settings)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    if settings.db_dialect == "sqlite":
        target = f"sqlite:{settings.sqlite_path}"
    else:
        target = f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    typer.echo(f"DB={target} | dialect={settings.db_dialect} | env={settings.app_env}")


@app.command()
def dialects() -> None:
    """
    List available SQL dialects.
    """
    typer.echo("Available dialects: " + ", ".join(available_dialects()))


@app.command()
def show(
    table: str = typer.Argument(..., help="Table class as 'package.module:ClassName'."),
    pk: str = typer.Argument(..., help="Primary key of the record."),
    fields: Optional[List[str]] = typer.Option(
        None, "--field", "-f", help="Field to load (repeatable). Defaults to all."
    ),
) -> None:
    """
    Load one record and print its fields.
    """
    table_cls = _table(table)
    errors = ErrorList()
    with _setup() as login:
        record = table_cls.load(login, pk, fields or "*", errors=errors)
        if record is None:
            print_errors(errors)
            raise typer.Exit(code=1)
        print_record(record)


@app.command("list")
def list_records(
    table: str = typer.Argument(..., help="Table class as 'package.module:ClassName'."),
    where: Optional[str] = typer.Option(None, "--where", "-w", help="Raw SQL filter."),
    order: Optional[List[str]] = typer.Option(None, "--order", "-o", help="ORDER BY term (repeatable)."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Stop after this many records."),
) -> None:
    """
    List records of a table.
    """
    table_cls = _table(table)
    errors = ErrorList()
    with _setup() as login:
        try:
            cursor = table_cls.get_records(login, where=where, order=order, errors=errors)
        except ConfigurationError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=2)
        records = []
        for record in cursor:
            records.append(record)
            if limit is not None and len(records) >= limit:
                cursor.close()
                break
        if errors:
            print_errors(errors)
            raise typer.Exit(code=1)
        print_records(records, title=table_cls.schema.name)


@app.command()
def exists(
    table: str = typer.Argument(..., help="Table class as 'package.module:ClassName'."),
    pk: str = typer.Argument(..., help="Primary key to look for."),
) -> None:
    """
    Report whether a record with the given key exists. Exits 1 when it does not.
    """
    table_cls = _table(table)
    errors = ErrorList()
    with _setup() as login:
        found = table_cls.key_exists(login, pk, errors=errors)
    if errors:
        print_errors(errors)
    typer.echo("yes" if found else "no")
    if not found:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
