"""Logging utilities for vind."""

import inspect
import logging
import os

from vind.core import logging as lg

LOGGER_NAME = "vind"


def configure_logging(
    log_level: lg.levels.LogLevel = lg.levels.LogLevel.INFO,
) -> lg.logger.VindLogger:
    """
    Create the vind logger or return the existing one.

    Parameters
    ----------
    log_level : LogLevel
        Minimum log level to emit.

    Returns
    -------
    VindLogger
        The configured vind logger.
    """
    logging.setLoggerClass(lg.logger.VindLogger)
    try:
        logger = logging.getLogger(LOGGER_NAME)
    finally:
        logging.setLoggerClass(logging.Logger)

    if not isinstance(logger, lg.logger.VindLogger):
        # A plain logger was registered under our name before we got here
        logging.Logger.manager.loggerDict.pop(LOGGER_NAME, None)
        logging.setLoggerClass(lg.logger.VindLogger)
        try:
            logger = logging.getLogger(LOGGER_NAME)
        finally:
            logging.setLoggerClass(logging.Logger)

    if not any(isinstance(h, lg.handler.VindLoggerHandler) for h in logger.handlers):
        handler = lg.handler.VindLoggerHandler()
        logger._formatter = lg.formatter.VindLogFormatter(
            always_verbose=log_level == lg.levels.LogLevel.DEBUG
        )
        handler.setFormatter(logger._formatter)
        logger.addHandler(handler)
        logger.propagate = False

    logger.set_level(log_level)

    # Turn off urllib3 and docker SDK logging
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("docker").setLevel(logging.WARNING)

    return logger  # type: ignore[return-value]


def get_caller_fq_name(stacklevel: int = 4) -> str:
    """Get the fully qualified name of the caller."""
    frame = inspect.currentframe()
    for _ in range(stacklevel):
        if frame is not None:
            frame = frame.f_back
    if frame is None:
        return "<unknown>"
    module = inspect.getmodule(frame)
    module_name = module.__name__ if module else "<unknown>"
    filename = os.path.basename(frame.f_code.co_filename)
    lineno = frame.f_lineno
    return f"{module_name}:{filename}:{lineno}"
