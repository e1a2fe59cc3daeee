"""
Logging for Savvy.

Everything is written to stderr: stdout belongs to the shell hooks, which
capture it with $(...).

Example:
    from savvy.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Recording session started")
    logger.debug("command recorded")
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme

SAVVY_THEME = Theme({
    "log.time": "dim cyan",
    "log.level.debug": "dim blue",
    "log.level.info": "green",
    "log.level.warning": "yellow",
    "log.level.error": "bold red",
    "log.level.critical": "bold white on red",
    "savvy.success": "bold green",
    "savvy.notice": "cyan",
    "savvy.step": "bold",
})

# Global console instance
console = Console(theme=SAVVY_THEME, stderr=True)

_initialized = False


def setup_logging(
    level: str = "INFO",
    show_time: bool = True,
    show_path: bool = False,
    rich_tracebacks: bool = True,
) -> None:
    """
    init Savvy's logging

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        show_time: Show timestamps in log output
        show_path: Show file path in log output
        rich_tracebacks: Use rich formatting for tracebacks

    Note:
        The CLI calls this once before dispatching a command. A second call
        replaces the handler, so ``--debug`` can raise verbosity afterwards.
    """
    global _initialized

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logging.basicConfig(
        level=numeric_level,
        handlers=[handler],
        force=True,
    )

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a given module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    if not _initialized:
        setup_logging(level="WARNING")

    return logging.getLogger(name)


class SavvyLogger:
    """
    Savvy-specific logger

    Wraps standard logger with the user-facing messages printed around a
    recording or replay session.
    """

    def __init__(self, name: str):
        self.logger = get_logger(name)
        self.console = console

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log error message."""
        self.logger.error(message, **kwargs)

    def success(self, message: str) -> None:
        """
        Print a success message.

        Args:
            message: Success message to display
        """
        self.console.print(f"[savvy.success]✓[/savvy.success] {escape(message)}")

    def notice(self, message: str) -> None:
        """Print an informational line without log decorations."""
        self.console.print(f"[savvy.notice]{escape(message)}[/savvy.notice]")

    def step(self, index: int, command: str, description: Optional[str] = None) -> None:
        """
        Print one numbered command.

        Args:
            index: Zero-based position
            command: Command text
            description: Optional description shown dimmed
        """
        msg = f"[savvy.step]{index + 1:>3}.[/savvy.step] {escape(command)}"
        if description:
            msg += f" [dim]({escape(description)})[/dim]"
        self.console.print(msg)


def get_savvy_logger(name: str) -> SavvyLogger:
    """
    Get a SavvyLogger instance for the given module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        SavvyLogger instance
    """
    return SavvyLogger(name)
