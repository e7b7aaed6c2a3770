"""
Helpers shared by CLI command modules.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from vespakit.core.config import AppConfig, ConfigError, load_app_config
from vespakit.core.logging import setup_logging

T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)

CONFIG_OPTION_HELP = "Path to vespakit.yaml (default: configs/vespakit.yaml)"


def load_config_or_exit(path: Optional[Path]) -> AppConfig:
    """Load configuration and set up logging, or exit with the error shown."""
    try:
        config = load_app_config(path)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        if e.details:
            err_console.print(f"[dim]{escape(e.details)}[/dim]")
        raise typer.Exit(1)

    setup_logging(
        level="DEBUG" if config.debug else config.logging.level.value,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )
    return config


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine to completion."""
    return asyncio.run(coro)
