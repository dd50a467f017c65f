"""Rich logging integration for ccBencode.

Provides Rich-based logging handlers and formatters.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

from rich.console import Console
from rich.errors import StyleSyntaxError
from rich.logging import RichHandler
from rich.style import Style

# Bracketed runs that may be markup: [style], [/style], [/]
_MARKUP_PATTERN = re.compile(r"\[(/?)([^\[\]]*)\]")


class CorrelationRichHandler(RichHandler):
    """RichHandler with correlation ID support and codec-aware highlighting.

    Function names are colored pink, byte offsets and shape strategy
    messages are colored bright cyan.
    """

    LEVEL_COLORS: dict[str, str] = {
        "DEBUG": "dim",
        "INFO": "cyan",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold red",
    }

    ACTION_PATTERNS = [
        r"Offset: \d+",
        r"Built \w+ (?:encoder|decoder)",
        r"Ignoring type mismatch",
        r"Discarding surplus",
    ]

    def __init__(
        self,
        *args: Any,
        console: Console | None = None,
        show_colors: bool = True,
        **kwargs: Any,
    ) -> None:
        """Initialize RichHandler with correlation ID filter.

        Args:
            *args: Positional arguments for RichHandler
            console: Optional Rich Console instance
            show_colors: Whether to colorize action text
            **kwargs: Keyword arguments for RichHandler

        """
        if console is None:
            console = Console(file=sys.stderr, markup=True, color_system="auto")

        self.show_colors = show_colors

        # RichHandler does not render markup unless asked to
        if "markup" not in kwargs:
            kwargs["markup"] = True

        super().__init__(*args, console=console, **kwargs)

    def _colorize_action_text(self, message: str) -> str:
        """Wrap action text in bright cyan markup."""
        if not self.show_colors:
            return message

        for pattern in self.ACTION_PATTERNS:
            for match in reversed(list(re.finditer(pattern, message))):
                start, end = match.span()
                message = (
                    message[:start]
                    + f"[bright_cyan]{message[start:end]}[/bright_cyan]"
                    + message[end:]
                )
        return message

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record with correlation ID and colored function name."""
        try:
            # Other handlers see the same record, so decorate a copy
            record = logging.makeLogRecord(record.__dict__)
            if not hasattr(record, "correlation_id"):
                # Lazy import avoids a cycle with logging_config
                from ccbencode.utils.logging_config import correlation_id

                record.correlation_id = correlation_id.get() or "no-correlation-id"

            # Escape the rendered message so bencode payloads like "[1]" are not
            # mistaken for markup, then add our own markup around it.
            message = _escape(record.getMessage())
            message = self._colorize_action_text(message)
            func_name = getattr(record, "funcName", None)
            if func_name and self.show_colors:
                message = f"[#ff69b4]{func_name}[/#ff69b4] {message}"
            record.msg = message
            record.args = ()

            super().emit(record)
        except Exception:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        """Report a failed emit on stderr without re-entering logging."""
        try:
            sys.stderr.write(
                f"Logging error: {record.levelname} {record.name}: {record.msg}\n"
            )
            sys.stderr.flush()
        except OSError:
            pass


def _escape(text: str) -> str:
    """Escape characters Rich would read as markup."""
    return text.replace("[", r"\[")


def _markup_tag(match: re.Match[str]) -> str:
    closing, name = match.groups()
    if not name:
        return "" if closing else match.group(0)
    try:
        Style.parse(name)
    except StyleSyntaxError:
        return match.group(0)
    return ""


def strip_rich_markup(text: str) -> str:
    """Strip Rich markup from text for file logging.

    Only brackets holding a valid Rich style are removed, so annotations such
    as ``list[int]`` and payloads such as ``[1]`` survive.

    Args:
        text: Text with Rich markup

    Returns:
        Text without Rich markup

    """
    return _MARKUP_PATTERN.sub(_markup_tag, text)


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
    show_colors: bool = True,
) -> logging.Handler:
    """Create a RichHandler with correlation ID support.

    Args:
        console: Optional Rich Console instance
        level: Log level
        show_path: Whether to show file paths in log output
        rich_tracebacks: Whether to use rich tracebacks
        show_colors: Whether to colorize action text

    Returns:
        Configured RichHandler instance

    """
    return CorrelationRichHandler(
        console=console,
        level=level,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
        show_colors=show_colors,
    )
