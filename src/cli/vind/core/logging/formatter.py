"""Logging formatter for the vind logger."""

import logging
import os
import sys

from click import style

from vind.core.logging.levels import LogLevel

DEFAULT_INDENT = " " * 5


class VindLogFormatter(logging.Formatter):
    """Formatter for vind logs.

    Every record is prefixed with a short level marker. Continuation lines of
    multi-line messages are indented under the first one. At debug level the
    caller location is added after the prefix.
    """

    COLORS = {
        "DEBUG": "magenta",
        "INFO": "cyan",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "red",
    }
    PREFIXES = {
        "DEBUG": "[v]  ",
        "INFO": "[i]  ",
        "WARNING": "[w]  ",
        "ERROR": "[e]  ",
        "CRITICAL": "[e]  ",
    }

    def __init__(self, always_verbose=False):
        super().__init__()
        self.always_verbose = always_verbose
        self.enable_color = sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record for output.

        Parameters
        ----------
        record : logging.LogRecord
            The log record to format.

        Returns
        -------
        str
            The formatted log message.
        """
        msg = record.getMessage()
        if not msg.strip():
            return ""

        left = self._get_left_prefix(record, self._get_prefix(record))
        lines = msg.splitlines()
        return "\n".join(
            [f"{left}{lines[0]}"] + [f"{DEFAULT_INDENT}{line}" for line in lines[1:]]
        )

    def _get_prefix(self, record: logging.LogRecord) -> str:
        prefix = self.PREFIXES.get(record.levelname, LogLevel.INFO.prefix)
        color = self.COLORS.get(record.levelname, LogLevel.INFO.color)
        if self.enable_color:
            return style(prefix, fg=color, bold=True)
        return prefix

    def _get_left_prefix(self, record: logging.LogRecord, prefix: str) -> str:
        fq_caller = getattr(record, "fq_caller", "")
        if self.always_verbose or record.levelno == logging.DEBUG:
            if fq_caller:
                return f"{prefix}{fq_caller} "
            elif record.pathname:
                return f"{prefix}{os.path.basename(record.pathname)}:{record.lineno} "
        return prefix
