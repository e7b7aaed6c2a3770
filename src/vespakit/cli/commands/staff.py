"""
Staff account commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from vespakit.cli.common import CONFIG_OPTION_HELP, console, err_console, load_config_or_exit, run_async
from vespakit.knack import (
    CSV_TEMPLATE,
    EmailProxy,
    ImportReport,
    KnackClient,
    StaffImporter,
    StaffRow,
    parse_staff_csv,
)

app = typer.Typer(
    help="Import staff accounts",
    no_args_is_help=True,
)


@app.command("template")
def csv_template(
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the template to a file instead of stdout",
    ),
) -> None:
    """Print (or save) a staff CSV template."""
    if output is None:
        console.print(CSV_TEMPLATE, end="", markup=False, highlight=False)
        return
    output.write_text(CSV_TEMPLATE, encoding="utf-8")
    console.print(f"[green]OK[/green] Template written to {output}")


@app.command("import")
def import_staff(
    csv_path: Path = typer.Argument(..., help="CSV file with First Name, Last Name, Email columns"),
    customer_id: str = typer.Option(..., "--customer-id", help="Knack id of the school's customer record"),
    school_id: Optional[str] = typer.Option(None, "--school-id", help="School id stored on each account"),
    admin_email: Optional[str] = typer.Option(
        None,
        "--admin-email",
        help="Send a summary of the import to this address",
    ),
    accounts_remaining: Optional[int] = typer.Option(
        None,
        "--accounts-remaining",
        help="Refuse the import if the CSV has more rows than this",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate the CSV without creating accounts",
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Create staff accounts from a CSV file.

    Examples:
        vespakit staff import staff.csv --customer-id 5f1e... --dry-run
        vespakit staff import staff.csv --customer-id 5f1e... --admin-email head@school.edu
    """
    if not csv_path.exists():
        err_console.print(f"[red]File not found:[/red] {csv_path}")
        raise typer.Exit(1)

    parsed = parse_staff_csv(
        csv_path.read_text(encoding="utf-8-sig"),
        accounts_remaining=accounts_remaining,
    )
    if parsed.errors:
        err_console.print("[red]CSV has problems:[/red]")
        for error in parsed.errors:
            err_console.print(f"  [red]-[/red] {escape(error)}")
        raise typer.Exit(1)

    console.print(f"[bold]{len(parsed.rows)} staff member(s) ready to import[/bold]")
    if dry_run:
        console.print("[yellow]Dry run mode - no accounts will be created[/yellow]")
        _show_rows(parsed.rows)
        return

    config = load_config_or_exit(config_path)

    async def _import() -> ImportReport:
        async with KnackClient.from_config(config) as client:
            email = None
            if config.proxy.email_url:
                email = EmailProxy(client.dispatcher, config.proxy.email_url, config.proxy.email)
            else:
                console.print("[yellow]No email proxy configured - passwords will be listed below[/yellow]")

            importer = StaffImporter(
                client,
                customer_id=customer_id,
                school_id=school_id,
                fields=config.staff,
                email=email,
                admin_email=admin_email,
            )

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("{task.completed}/{task.total}"),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("Creating accounts...", total=len(parsed.rows))

                def on_row(index: int, total: int, row: StaffRow) -> None:
                    progress.update(
                        task,
                        completed=index - 1,
                        description=f"[cyan]Creating {row.email}[/cyan]",
                    )

                report = await importer.import_rows(parsed.rows, progress=on_row)
                progress.update(task, completed=len(parsed.rows))
            return report

    report = run_async(_import())
    _show_report(report)

    if report.failed:
        raise typer.Exit(1)


def _show_rows(rows: list[StaffRow]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Email")
    table.add_column("Year Group")
    table.add_column("Group")

    for row in rows:
        name = f"{row.title} {row.full_name}".strip()
        table.add_row(name, row.email, row.year_group or "-", row.group or "-")

    console.print(table)


def _show_report(report: ImportReport) -> None:
    table = Table(title="Staff Import", show_header=True, header_style="bold magenta")
    table.add_column("Email", style="cyan")
    table.add_column("Account", justify="center")
    table.add_column("Email Sent", justify="center")
    table.add_column("Password / Error")

    for result in report.results:
        if result.ok:
            table.add_row(
                result.row.email,
                "[green]created[/green]",
                "[green]yes[/green]" if result.email_sent else "[yellow]no[/yellow]",
                result.password or "",
            )
        else:
            table.add_row(result.row.email, "[red]failed[/red]", "-", f"[red]{escape(result.error or '')}[/red]")

    console.print()
    console.print(table)
    console.print(
        f"[bold]Created:[/bold] {len(report.created)}  "
        f"[bold]Failed:[/bold] {len(report.failed)}"
    )
