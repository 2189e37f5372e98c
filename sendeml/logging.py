# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Centralized logging configuration for protocol traces.

SMTP traces are plain log records (``send: ...`` / ``recv: ...``).  Raw
message bytes may carry stray CR or LF characters that would otherwise
split one record across several output lines, so the handler installed by
:func:`configure_logging` renders them as visible placeholders.

Usage:
    # In entry points (scripts, CLI tools)
    from sendeml.logging import configure_logging
    configure_logging(level=logging.INFO)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
    logger.info("%ssend: %s", context.prefix, command)
"""

import logging
import re
from typing import ClassVar


#: Plain format matching the console output of the sender.
TRACE_FORMAT = "%(message)s"

#: Timestamped format used with ``--verbose``.
VERBOSE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ControlCharFilter(logging.Filter):
    """Logging filter that makes CR and LF visible in log output.

    Example:
        filter = ControlCharFilter()
        handler.addFilter(filter)
        logger.info("send: %s", "\\r\\n.")
        # Output: "send: <CR><LF>."
    """

    _pattern: ClassVar[re.Pattern[str]] = re.compile(r"[\r\n]")
    _names: ClassVar[dict[str, str]] = {"\r": "<CR>", "\n": "<LF>"}

    def filter(self, record: logging.LogRecord) -> bool:
        """Rewrite control characters in the message and string arguments.

        Args:
            record: The log record to filter.

        Returns:
            Always True (record is never suppressed, only modified).
        """
        record.msg = self._render(str(record.msg))
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._render(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True

    @classmethod
    def _render(cls, text: str) -> str:
        return cls._pattern.sub(lambda m: cls._names[m.group(0)], text)


def configure_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
    add_control_char_filter: bool = True,
) -> None:
    """Configure logging for the application.

    Sets up the root logger with a single stream handler.

    Args:
        level: The logging level (e.g., logging.INFO, logging.DEBUG).
        format_string: Custom format string. If None, uses TRACE_FORMAT.
        add_control_char_filter: Whether to add the ControlCharFilter.
    """
    if format_string is None:
        format_string = TRACE_FORMAT

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))

    if add_control_char_filter:
        handler.addFilter(ControlCharFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)
