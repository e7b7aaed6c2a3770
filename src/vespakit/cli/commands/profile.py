"""
Student profile commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.panel import Panel

from vespakit.cli.common import CONFIG_OPTION_HELP, console, err_console, load_config_or_exit, run_async
from vespakit.core.fetch import ApiError
from vespakit.knack import KnackClient, ProfileService, StudentProfile

app = typer.Typer(
    help="Look up student profiles",
    no_args_is_help=True,
)


@app.command("lookup")
def lookup_profile(
    student_id: Optional[str] = typer.Option(None, "--id", "-i", help="Student record id"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Student name"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Find a student's profile by record id or by name."""
    if not student_id and not name:
        err_console.print("[red]Specify --id <record id> or --name <student name>[/red]")
        raise typer.Exit(1)

    config = load_config_or_exit(config_path)

    async def _lookup() -> Optional[StudentProfile]:
        async with KnackClient.from_config(config) as client:
            service = ProfileService(client, config.profiles)
            if student_id:
                return await service.lookup_by_id(student_id)
            return await service.lookup_by_name(name or "")

    try:
        profile = run_async(_lookup())
    except ApiError as e:
        err_console.print(f"[red]Lookup failed:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if profile is None:
        err_console.print(f"[red]No profile found for[/red] {student_id or name}")
        raise typer.Exit(1)

    source = "profile record" if profile.source == "profile" else "student record (no profile found)"
    console.print()
    console.print(Panel.fit(
        f"[bold]Name:[/bold] {profile.name or '-'}\n"
        f"[bold]Student ID:[/bold] {profile.student_id or '-'}\n"
        f"[bold]Email:[/bold] {profile.email or '-'}\n"
        f"[bold]School:[/bold] {profile.school}\n"
        f"[bold]Year Group:[/bold] {profile.year_group}\n"
        f"[bold]Tutor Group:[/bold] {profile.tutor_group}\n"
        f"[bold]Attendance:[/bold] {profile.attendance}\n\n"
        f"[dim]Source: {source}[/dim]",
        title="[bold]Student Profile[/bold]",
        border_style="cyan",
    ))
