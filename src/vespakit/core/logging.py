"""
Logging for vespakit.

Console output goes through Rich; file output is one JSON object per
line. Request-level fields (resource, request key, attempt, status)
travel on the log record as extras and end up as top-level JSON keys.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from rich.console import Console


ROOT_LOGGER_NAME = "vespakit"

# Record extras copied into JSON output, in this order
CONTEXT_FIELDS = ("resource", "request_key", "attempt", "status_code", "url")

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "default",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


class JSONFormatter(logging.Formatter):
    """One JSON line per record, request context flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key)) for key in CONTEXT_FIELDS if hasattr(record, key)
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json_dumps(entry)


class RichConsoleHandler(logging.Handler):
    """Print records to a Rich console, tagged with resource and attempt."""

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    @staticmethod
    def _prefix(record: logging.LogRecord) -> str:
        tags = []
        resource = getattr(record, "resource", None)
        if resource:
            tags.append(f"[cyan]{resource}[/cyan]")
        attempt = getattr(record, "attempt", None)
        if attempt:
            tags.append(f"[magenta]#{attempt}[/magenta]")
        return f"\\[{' '.join(tags)}] " if tags else ""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            style = LEVEL_STYLES.get(record.levelno, "default")
            self.console.print(
                f"{self._prefix(record)}[{style}]{self.format(record)}[/{style}]",
                markup=True,
                highlight=False,
            )
            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


def _console_handler(rich_console: bool) -> logging.Handler:
    if rich_console:
        handler: logging.Handler = RichConsoleHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    return handler


def _file_handler(log_file: Path | str, json_format: bool) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the ``vespakit`` logger tree.

    Calling this again replaces the handlers from the previous call.

    Args:
        level: Console log level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file that receives every record at DEBUG
        json_format: Write the file as JSON lines instead of plain text
        rich_console: Use Rich for the console instead of a plain stream

    Returns:
        The package root logger
    """
    numeric_level = getattr(logging, level.upper())

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else numeric_level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console_handler = _console_handler(rich_console)
    console_handler.setLevel(numeric_level)
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_file_handler(log_file, json_format))

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the package namespace (``vespakit.<name>``)."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)


class ContextualLogger(logging.LoggerAdapter):
    """Adapter that stamps bound request context onto every record.

    Only names in ``CONTEXT_FIELDS`` may be bound. Extras passed on an
    individual call win over bound values.
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        unknown = set(context) - set(CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
        super().__init__(logger, {k: v for k, v in context.items() if v is not None})

    def __getattr__(self, name: str) -> Any:
        if name in CONTEXT_FIELDS:
            return self.extra.get(name)
        raise AttributeError(name)

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextualLogger":
        """New adapter with extra fields bound on top of the current ones."""
        merged = {**self.extra, **{k: v for k, v in context.items() if v is not None}}
        return ContextualLogger(self.logger, **merged)


def get_contextual_logger(name: str | None = None, **context: Any) -> ContextualLogger:
    """Logger bound to request context, e.g. ``resource=`` and ``request_key=``."""
    return ContextualLogger(get_logger(name), **context)
