"""Centralized logging: Rich console lines plus structlog JSON file output.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Core console functions (log, info, warn, error)
3. Domain helpers for operator-facing relay events
4. The low-priority message sink (plain text, no popup)
5. Structlog configuration (configure)

Console output uses Rich markup for colors. JSON file output via structlog
stays separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from push_relay.config import Config

_console = Console(highlight=False)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output."""

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    WAIT = "⏳"
    MESSAGE = "✉"
    QUIET = "[dim]✉[/]"
    SIGNAL = "⚡"
    CONNECTED = "[green]⬤[/]"
    DISCONNECTED = "[red]⬤[/]"


_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def relay_started(device_id: str) -> None:
    """Log relay startup."""
    info(f"Relay started for device [cyan]{escape(device_id)}[/]", Icon.OK)


def relay_stopped() -> None:
    """Log relay shutdown complete."""
    info("Relay stopped", Icon.OK)


def signal_received(name: str) -> None:
    """Log signal received."""
    info(f"Received [bold]{name}[/]", Icon.SIGNAL)


def session_authenticated() -> None:
    """Log a live, authenticated session."""
    info("Connected", Icon.CONNECTED)


def session_lost(reason: str) -> None:
    """Log a session that ended and will be retried."""
    warn(f"Disconnected [dim]({escape(reason)})[/]", Icon.DISCONNECTED)


def reconnecting_in(delay: float) -> None:
    """Log a backoff wait before the next attempt."""
    info(f"[dim]Reconnecting in {delay:.0f}s...[/]", Icon.WAIT)


def reregister_required() -> None:
    """Log the fatal abort that ends the relay."""
    error("Server aborted the session. Run [bold]push-relay register[/] again.", Icon.FAIL)


def message_printed(title: str, body: str) -> None:
    """Print a relayed message when desktop popups are disabled."""
    info(f"[bold]{escape(title)}[/]: {escape(body)}", Icon.MESSAGE)


def low_priority_message(title: str, body: str) -> None:
    """Textual sink for messages with priority below zero."""
    info(f"[bold]{escape(title)}[/] [dim]{escape(body)}[/]", Icon.QUIET)


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config, verbose: bool = False) -> None:
    """Configure structlog with dual output: console + JSON file.

    Console output uses structlog's human-readable renderer.
    File output uses JSON Lines format for machine parsing.

    Args:
        config: Application config with paths and rotation settings
        verbose: Also show DEBUG events (keepalives, frames) on the console
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.system.log_max_bytes,
        backupCount=config.system.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
                _add_source("relay"),
                structlog.processors.format_exc_info,
            ],
        )
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.DEBUG if verbose else logging.INFO)
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(file_handler)
    stdlib_root.addHandler(console_handler)

    # httpx logs every request at INFO; keep it out of the relay log
    logging.getLogger("httpx").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
