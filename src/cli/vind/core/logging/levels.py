"""Log levels for the vind logger."""

import logging
from enum import Enum


class LogLevel(Enum):
    """Logging levels for vind.

    Attributes
    ----------
    prefix : str
        The prefix for the log level.
    color : str
        The color for the log level.
    debug : bool
        Whether the log level is debug.
    """

    INFO = ("[i]  ", "cyan", False)
    WARN = ("[w]  ", "yellow", False)
    ERROR = ("[e]  ", "red", False)
    DEBUG = ("[v]  ", "magenta", True)

    def __init__(self, prefix: str, color: str, debug: bool):
        self.prefix = prefix
        self.color = color
        self.debug = debug

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        """
        Resolve a level from a user supplied name.

        `WARNING` is accepted as an alias of `WARN`. Unknown names fall back
        to `INFO`.
        """
        name = (name or "").strip().upper()
        if name == "WARNING":
            name = "WARN"
        try:
            return cls[name]
        except KeyError:
            return cls.INFO


PY_LEVEL = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}
