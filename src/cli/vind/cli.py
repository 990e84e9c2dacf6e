"""vind CLI entrypoint."""

import difflib
import os
import sys
from importlib import import_module
from typing import Any

import click

from vind import settings, utils
from vind.core.context import VindContext
from vind.core.logging.levels import LogLevel
from vind.core.logging.utils import configure_logging

ALIASES = {"status": "show"}


class CommandLineInterface(click.Group):
    """Click group that loads commands from the `vind.cmd` package."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        """List available commands."""
        cmd_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "cmd"))
        commands = [
            filename[:-3].replace("_", "-")
            for filename in os.listdir(cmd_dir)
            if filename.endswith(".py") and not filename.startswith("__")
        ]
        return sorted(commands)

    def get_command(self, ctx: click.Context, name: str) -> Any:
        """Load and return the command module."""
        name = ALIASES.get(name, name)
        mod_name = name.replace("-", "_")
        try:
            mod = import_module(f"vind.cmd.{mod_name}")
        except ModuleNotFoundError:
            logger = configure_logging(LogLevel.INFO)
            all_commands = self.list_commands(ctx)
            suggestion = difflib.get_close_matches(name, all_commands, n=1)
            suggestion_msg = f" Did you mean '{suggestion[0]}'?" if suggestion else ""
            logger.error(f"Command '{name}' not found.{suggestion_msg}")
            sys.exit(2)
        cmd = getattr(mod, "cli", None)
        if cmd is None:
            configure_logging(LogLevel.INFO).error(f"No 'cli' object in {mod_name}")
            sys.exit(1)
        return cmd


@click.command(cls=CommandLineInterface)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.option(
    "--log-level",
    type=click.Choice(
        ["ERROR", "WARN", "INFO", "DEBUG"],
        case_sensitive=False,
    ),
    default="INFO",
    envvar=settings.LOG_LEVEL_ENV_VAR,
    help="Set the minimum log level (ERROR, WARN, INFO, DEBUG).",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    default="",
    type=str,
    help=(
        f"Cluster configuration file. Defaults to ${settings.CONFIG_ENV_VAR}, "
        f"then {settings.DEFAULT_CONFIG_FILE}."
    ),
)
@utils.exception_handler
@utils.pass_environment()
def cli(
    ctx: VindContext,
    verbose: bool,
    log_level: str,
    config_file: str,
) -> None:
    """vind creates containers that look and work like virtual machines.

    Machines are described in a YAML configuration file, grouped in
    replicated machine sets, and reachable over SSH.
    """
    ctx.user_config_file = config_file
    ctx.log_level = LogLevel.DEBUG if verbose else LogLevel.from_name(log_level)
