"""
Record commands for reading Knack objects.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.markup import escape
from rich.table import Table

from vespakit.cli.common import CONFIG_OPTION_HELP, console, err_console, load_config_or_exit, run_async
from vespakit.core.config import FilterMatch
from vespakit.core.fetch import ApiError
from vespakit.knack import FilterRule, KnackClient, KnackFilter, sanitize_field

app = typer.Typer(
    help="Read Knack records",
    no_args_is_help=True,
)


def parse_rule(text: str) -> FilterRule:
    """Parse ``field:operator:value`` (the value may itself contain colons)."""
    parts = text.split(":", 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise typer.BadParameter(f"Expected field:operator[:value], got {text!r}")
    value = parts[2] if len(parts) == 3 else None
    return FilterRule(field=parts[0], operator=parts[1], value=value)


def _print_records(records: list[dict[str, Any]], columns: list[str]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    for column in columns:
        table.add_column(column)

    for record in records:
        table.add_row(
            str(record.get("id", "")),
            *[sanitize_field(record.get(column))[:60] for column in columns],
        )

    console.print(table)


@app.command("get")
def get_record(
    object_key: str = typer.Argument(..., help="Knack object key, e.g. object_6"),
    record_id: str = typer.Argument(..., help="Record id"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Fetch one record and print it as JSON."""
    config = load_config_or_exit(config_path)

    async def _get() -> Optional[dict[str, Any]]:
        async with KnackClient.from_config(config) as client:
            return await client.get_record(object_key, record_id)

    try:
        record = run_async(_get())
    except ApiError as e:
        err_console.print(f"[red]Request failed:[/red] {escape(str(e))}")
        if e.body:
            err_console.print(f"[dim]{e.body_excerpt()}[/dim]")
        raise typer.Exit(1)

    if record is None:
        err_console.print(f"[red]Record not found:[/red] {object_key}/{record_id}")
        raise typer.Exit(1)

    console.print_json(json.dumps(record))


@app.command("find")
def find_records(
    object_key: str = typer.Argument(..., help="Knack object key, e.g. object_6"),
    rule: list[str] = typer.Option(
        [],
        "--rule",
        "-r",
        help="Filter rule field:operator:value (repeatable)",
    ),
    match: FilterMatch = typer.Option(
        FilterMatch.AND,
        "--match",
        "-m",
        help="Combine rules with and/or",
    ),
    rows: int = typer.Option(25, "--rows", "-n", help="Rows per page"),
    page: int = typer.Option(1, "--page", help="Page number"),
    column: list[str] = typer.Option(
        [],
        "--column",
        help="Field to show as a table column (repeatable)",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, json)",
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Find records matching filter rules.

    Examples:
        vespakit records find object_6 -r "field_47:contains:Jane"
        vespakit records find object_112 -r field_3064:is:abc -r field_3070:is:abc --match or
    """
    rules = [parse_rule(r) for r in rule]
    filters = KnackFilter(rules=rules, match=match) if rules else None

    config = load_config_or_exit(config_path)

    async def _find() -> list[dict[str, Any]]:
        async with KnackClient.from_config(config) as client:
            return await client.find_records(object_key, filters, rows_per_page=rows, page=page)

    try:
        records = run_async(_find())
    except ApiError as e:
        err_console.print(f"[red]Request failed:[/red] {escape(str(e))}")
        if e.body:
            err_console.print(f"[dim]{e.body_excerpt()}[/dim]")
        raise typer.Exit(1)

    if format == "json":
        console.print_json(json.dumps(records))
        return

    if not records:
        console.print("[dim]No records found.[/dim]")
        return

    _print_records(records, column or [r.field for r in rules])
    console.print(f"[dim]{len(records)} record(s)[/dim]")
