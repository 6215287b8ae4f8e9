"""Rich logging integration for unitorrent.

Provides a Rich console handler that carries the correlation id, and a file
formatter that strips Rich markup.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

_MARKUP_PATTERN = re.compile(r"\[/?[^\]]+\]")


class CorrelationRichHandler(RichHandler):
    """RichHandler that tags records with the current correlation id.

    The calling function name is prefixed to each message in pink so RPC
    traffic from different adapter operations is easy to tell apart.
    """

    def __init__(
        self,
        *args: Any,
        console: Console | None = None,
        show_function: bool = True,
        **kwargs: Any,
    ) -> None:
        """Initialize the handler.

        Args:
            *args: Positional arguments for RichHandler
            console: Optional Rich Console instance
            show_function: Prefix messages with the emitting function name
            **kwargs: Keyword arguments for RichHandler

        """
        if console is None:
            console = Console(file=sys.stderr, markup=True)
        self.show_function = show_function
        kwargs.setdefault("markup", True)
        super().__init__(*args, console=console, **kwargs)

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a record with correlation id and function prefix."""
        if not hasattr(record, "correlation_id"):
            from unitorrent.utils.logging_config import correlation_id

            record.correlation_id = correlation_id.get() or "no-correlation-id"

        if self.show_function and record.funcName:
            message = escape(record.getMessage())
            record.msg = f"[#ff69b4]{record.funcName}[/#ff69b4] {message}"
            record.args = ()

        super().emit(record)


def strip_rich_markup(text: str) -> str:
    """Strip Rich markup from text for file logging.

    Args:
        text: Text with Rich markup

    Returns:
        Text without Rich markup

    """
    return _MARKUP_PATTERN.sub("", text)


class FileFormatter(logging.Formatter):
    """Formatter for file output that strips Rich markup."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record, stripping Rich markup for file output."""
        return strip_rich_markup(super().format(record))


def create_rich_handler(
    console: Console | None = None,
    level: int | str = logging.INFO,
    show_path: bool = False,
    rich_tracebacks: bool = True,
) -> logging.Handler:
    """Create a Rich console handler with correlation id support.

    Args:
        console: Optional Rich Console instance
        level: Log level
        show_path: Whether to show file paths in log output
        rich_tracebacks: Whether to use rich tracebacks

    Returns:
        Configured handler

    """
    return CorrelationRichHandler(
        console=console,
        level=level,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
    )
