"""vind logger."""

import logging
from collections.abc import Callable


from vind.core import logging as lg


class VindLogger(logging.Logger):
    """vind logger."""

    def __init__(self, name: str, level: int = logging.NOTSET) -> None:
        super().__init__(name, level)
        self._log_level = lg.levels.LogLevel.INFO
        self._formatter: lg.formatter.VindLogFormatter | None = None

    def info(self, msg: object, *args: object, **kwargs) -> None:
        """Log an info message."""
        lvl = logging.INFO
        self._log_with_stacklevel(super().info, msg, *args, level=lvl, **kwargs)

    def warning(self, msg: object, *args: object, **kwargs) -> None:
        """Log a warning message."""
        lvl = logging.WARNING
        self._log_with_stacklevel(super().warning, msg, *args, level=lvl, **kwargs)

    def error(self, msg: object, *args: object, **kwargs) -> None:
        """Log an error message."""
        lvl = logging.ERROR
        self._log_with_stacklevel(super().error, msg, *args, level=lvl, **kwargs)

    def debug(self, msg: object, *args: object, **kwargs) -> None:
        """Log a debug message."""
        lvl = logging.DEBUG
        self._log_with_stacklevel(super().debug, msg, *args, level=lvl, **kwargs)

    @property
    def log_level(self) -> lg.levels.LogLevel:
        """Return the active log level."""
        return self._log_level

    def set_level(self, level: lg.levels.LogLevel) -> None:
        """Set the log level for the logger and all handlers."""
        self._log_level = level
        py_level = lg.levels.PY_LEVEL[level]
        self.setLevel(py_level)
        for handler in self.handlers:
            handler.setLevel(py_level)
        if self._formatter:
            self._formatter.always_verbose = level == lg.levels.LogLevel.DEBUG

    def _log_with_stacklevel(
        self, super_method: Callable[..., None], *args: object, **kwargs
    ) -> None:
        level = kwargs.pop("level", self.level)
        if not args:
            return super_method(*args, **kwargs)

        msg, *log_args = args
        msg_str = str(msg).strip()
        if not msg_str:
            return

        kwargs.setdefault("stacklevel", 3)

        # Caller location is only worth computing when it will be shown
        if self.isEnabledFor(logging.DEBUG) and level in (logging.DEBUG, logging.INFO):
            fq_name = lg.utils.get_caller_fq_name(stacklevel=kwargs["stacklevel"])
            kwargs.setdefault("extra", {})
            kwargs["extra"]["fq_caller"] = fq_name

        super_method(msg_str, *log_args, **kwargs)
