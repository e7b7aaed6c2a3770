"""
vespakit CLI - Main entry point.

Terminal access to the Knack app behind the VESPA scripts: record
reads, student profile lookup and staff CSV import, all through the
throttled request layer.
"""

from __future__ import annotations

import os
import sys
from typing import Optional

import typer
from dotenv import find_dotenv, load_dotenv
from rich.traceback import install as install_rich_traceback

from vespakit import __app_name__, __version__

from .common import console

# KNACK_* credentials usually live in a .env next to the config
load_dotenv(find_dotenv(usecwd=True))

install_rich_traceback(show_locals=False, width=120)

# Force UTF-8 on Windows to avoid encoding issues
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, "reconfigure"):
            try:
                stream.reconfigure(encoding="utf-8", errors="replace")
            except (AttributeError, OSError):
                pass

app = typer.Typer(
    name=__app_name__,
    help="Throttled, cached access to the VESPA Knack app",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """vespakit - Knack tooling for VESPA Academy."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import config, profile, records, staff  # noqa: E402

app.add_typer(config.app, name="config", help="Create and check configuration")
app.add_typer(records.app, name="records", help="Read Knack records")
app.add_typer(profile.app, name="profile", help="Look up student profiles")
app.add_typer(staff.app, name="staff", help="Import staff accounts")


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
