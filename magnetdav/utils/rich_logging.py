"""Rich logging integration for magnetdav.

Provides a Rich-based console handler that carries correlation IDs and
highlights request and session lifecycle events.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape


class CorrelationRichHandler(RichHandler):
    """RichHandler with correlation ID support and action highlighting.

    Function names are colored pink (#ff69b4) and lifecycle markers such as
    ``metadata ready`` or ``Reconciled`` are colored bright cyan.
    """

    ACTION_PATTERNS = [
        r"metadata ready",
        r"metadata timeout",
        r"Reconciled",
        r"Recovered \d+ content record\(s\)",
        r"Serving \S+ bytes \d+-\d+/\d+",
    ]

    def __init__(
        self,
        *args: Any,
        console: Console | None = None,
        show_colors: bool = True,
        **kwargs: Any,
    ) -> None:
        """Initialize handler.

        Args:
            *args: Positional arguments for RichHandler
            console: Optional Rich Console instance
            show_colors: Whether to decorate messages with markup
            **kwargs: Keyword arguments for RichHandler

        """
        if console is None:
            console = Console(file=sys.stdout, markup=True, color_system="auto")
        self.show_colors = show_colors
        kwargs.setdefault("markup", True)
        super().__init__(*args, console=console, **kwargs)

    def _colorize_action_text(self, message: str) -> str:
        for pattern in self.ACTION_PATTERNS:
            message = re.sub(
                pattern,
                lambda m: f"[bright_cyan]{m.group(0)}[/bright_cyan]",
                message,
            )
        return message

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a record with correlation ID and markup."""
        try:
            if not hasattr(record, "correlation_id"):
                from magnetdav.utils.logging_config import correlation_id

                record.correlation_id = correlation_id.get() or "no-correlation-id"

            if self.show_colors:
                # Escape user-controlled text (paths, URIs) before adding markup
                message = self._colorize_action_text(escape(record.getMessage()))
                func_name = getattr(record, "funcName", None)
                if func_name:
                    message = f"[#ff69b4]{func_name}[/#ff69b4] {message}"
                record.msg = message
                record.args = ()
            super().emit(record)
        except Exception:
            self.handleError(record)


def create_rich_handler(
    console: Console | None = None,
    level: int | str = logging.INFO,
    show_path: bool = False,
    rich_tracebacks: bool = True,
    show_colors: bool = True,
) -> logging.Handler:
    """Create a RichHandler with correlation ID support.

    Args:
        console: Optional Rich Console instance
        level: Log level
        show_path: Whether to show file paths in log output
        rich_tracebacks: Whether to use rich tracebacks
        show_colors: Whether to decorate messages with markup

    Returns:
        Configured handler instance

    """
    handler = CorrelationRichHandler(
        console=console,
        show_colors=show_colors,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
        log_time_format="[%Y-%m-%d %H:%M:%S]",
    )
    handler.setLevel(level)
    return handler
