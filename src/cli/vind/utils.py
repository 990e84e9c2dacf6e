"""Utility functions for the vind CLI."""

from __future__ import annotations

import logging
import os
import sys
import traceback
from functools import wraps
from importlib.metadata import PackageNotFoundError, version
from inspect import signature
from typing import Any, Optional

from click import ClickException, echo, make_pass_decorator
from click.exceptions import Exit

from vind.core.errors import UserError, VindError


# ----------------------------------------------------------------------
# CLI Decorators & Exception Handling
# ----------------------------------------------------------------------
def pass_environment() -> Any:
    """
    Return a Click pass decorator for the VindContext.

    Returns
    -------
    Any
        A decorator that passes the VindContext instance.
    """
    from vind.core.context import VindContext

    return make_pass_decorator(VindContext, ensure=True)


def handle_exception(
    error: BaseException,
    ctx: Optional[Any] = None,
    skip_traceback: bool = False,
) -> None:
    """
    Handle a single exception.

    Parameters
    ----------
    error : BaseException
        The exception object.
    ctx : Optional[Any]
        Optional CLI context object with logger.
    skip_traceback : bool
        If True, suppresses traceback output unless overridden by error
        type.

    Raises
    ------
    SystemExit
        Exits the program with the appropriate exit code.
    """
    if isinstance(error, UserError):
        error_msg = error.msg
        exit_code = error.exit_code
        skip_traceback = True
    elif isinstance(error, VindError):
        error_msg = error.msg
        exit_code = error.exit_code
    else:
        error_msg = str(error)
        exit_code = 1

    tb = error.__traceback__
    while tb and tb.tb_next:
        tb = tb.tb_next
    if tb:
        frame = tb.tb_frame
        filename = os.path.basename(frame.f_code.co_filename)
        module = frame.f_globals.get("__name__", "")
        origin = f"{module}:{filename}:{tb.tb_lineno}"
    else:
        origin = "unknown:unknown:0"

    logger = getattr(ctx, "logger", logging.getLogger("vind"))
    logger.error(f"[Origin: {origin}] {error_msg}")

    if not skip_traceback:
        echo(
            "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            err=True,
        )

    sys.exit(exit_code)


def exception_handler(func: Any) -> Any:
    """
    Handle unhandled exceptions.

    `SystemExit` and click's own exceptions pass through untouched.

    Parameters
    ----------
    func : Callable
        The function to wrap.

    Returns
    -------
    Callable
        The wrapped function with exception handling.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        sig = signature(func)
        ctx = None
        if "ctx" in sig.parameters:
            ctx = kwargs.get("ctx")
            if ctx is None:
                ctx_index = list(sig.parameters).index("ctx")
                if len(args) > ctx_index:
                    ctx = args[ctx_index]
        try:
            return func(*args, **kwargs)
        except (SystemExit, KeyboardInterrupt):
            raise
        except Exception as e:
            if isinstance(e, (ClickException, Exit)):
                raise
            handle_exception(e, ctx)

    return wrapper


# ----------------------------------------------------------------------
# Parsing Helpers
# ----------------------------------------------------------------------
def split_machine_path(arg: str) -> tuple[str, str]:
    """
    Split a `cp` argument into machine name and path.

    Parameters
    ----------
    arg : str
        `machine:path` or a plain host path.

    Returns
    -------
    tuple[str, str]
        `(machine_name, path)`; `machine_name` is empty for host paths.
    """
    machine, sep, path = arg.partition(":")
    if not sep or not machine or os.path.sep in machine:
        return "", arg
    return machine, path


def split_user_machine(arg: str, default_user: str) -> tuple[str, str]:
    """
    Split `[user@]machine` into user and machine name.

    Raises
    ------
    UserError
        If either part is empty.
    """
    user, sep, machine = arg.rpartition("@")
    if not sep:
        return default_user, arg
    if not user or not machine:
        raise UserError(f"Invalid machine reference '{arg}'.", "Use [USER@]MACHINE_NAME.")
    return user, machine


# ----------------------------------------------------------------------
# Version Helpers
# ----------------------------------------------------------------------
def cli_ver() -> str:
    """
    Return the CLI version.

    Returns
    -------
    str
        CLI version.
    """
    try:
        return version("vind")
    except PackageNotFoundError:
        return "unknown"
