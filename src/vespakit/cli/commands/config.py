"""
Configuration commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from vespakit.cli.common import CONFIG_OPTION_HELP, console, err_console, load_config_or_exit
from vespakit.core.config.loader import DEFAULT_CONFIG_PATH, DEFAULT_CONFIG_TEMPLATE, validate_config_file

app = typer.Typer(
    help="Create and check configuration",
    no_args_is_help=True,
)


def _mask(value: Optional[str]) -> str:
    if not value:
        return "[dim]-[/dim]"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


@app.command("init")
def init_config(
    path: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--path",
        "-p",
        help="Where to write the configuration file",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing file",
    ),
) -> None:
    """Write a starter configuration file.

    Credentials are read from KNACK_APP_ID / KNACK_API_KEY at load time,
    so the file itself never holds secrets.
    """
    if path.exists() and not force:
        err_console.print(f"[red]File already exists:[/red] {path}")
        err_console.print("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")

    console.print()
    console.print(Panel.fit(
        f"[bold green]OK - wrote {path}[/bold green]\n\n"
        "Next steps:\n"
        "  1. Set [cyan]KNACK_APP_ID[/cyan] and [cyan]KNACK_API_KEY[/cyan] (or add them to .env)\n"
        "  2. Check it: [yellow]vespakit config validate[/yellow]",
        title="[bold]Configuration Created[/bold]",
        border_style="green",
    ))


@app.command("validate")
def validate_config(
    path: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--path",
        "-p",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Validate a configuration file."""
    errors = validate_config_file(path)

    if errors:
        err_console.print(f"[red]Invalid configuration:[/red] {path}")
        for error in errors:
            err_console.print(f"  [red]-[/red] {escape(error)}")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] {path} is valid")


@app.command("show")
def show_config(
    path: Optional[Path] = typer.Option(
        None,
        "--path",
        "-p",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Show the effective configuration (secrets masked)."""
    config = load_config_or_exit(path)

    table = Table(title="vespakit configuration", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value")

    table.add_row("knack.app_id", config.knack.app_id)
    table.add_row("knack.api_key", _mask(config.knack.api_key))
    table.add_row("knack.user_token", _mask(config.knack.user_token))
    table.add_row("knack.api_url", config.knack.api_url)
    table.add_row("throttle.base_cooldown_ms", str(config.throttle.base_cooldown_ms))
    table.add_row("throttle.max_cooldown_ms", str(config.throttle.max_cooldown_ms))
    table.add_row("retry.max_attempts", str(config.retry.max_attempts))
    table.add_row("retry.base_delay_ms", str(config.retry.base_delay_ms))
    table.add_row("cache.enabled", "Yes" if config.cache.enabled else "No")
    table.add_row("cache.ttl_seconds", f"{config.cache.ttl_seconds:g}")
    table.add_row("proxy.email_url", config.proxy.email_url or "[dim]-[/dim]")
    table.add_row("proxy.dashboard_url", config.proxy.dashboard_url or "[dim]-[/dim]")
    table.add_row("logging.level", config.logging.level.value)
    table.add_row("debug", "Yes" if config.debug else "No")

    console.print(table)
