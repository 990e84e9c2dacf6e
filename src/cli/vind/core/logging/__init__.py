"""Logging utilities for vind."""

from . import formatter, handler, levels, logger, utils

__all__ = [
    "formatter",
    "handler",
    "levels",
    "logger",
    "utils",
]
