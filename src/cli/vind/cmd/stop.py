"""Command to stop machines."""

import click

from vind import utils
from vind.core.context import VindContext


@click.command(
    "stop",
    help=(
        "Stop all cluster machines, or only the named ones, e.g.:\n\n"
        "vind stop ubuntu-node0"
    ),
)
@click.argument("machine_names", nargs=-1, metavar="[MACHINE_NAME]...")
@utils.exception_handler
@utils.pass_environment()
def cli(ctx: VindContext, machine_names: tuple[str, ...]) -> None:
    ctx.initialize()
    ctx.load_cluster().stop(list(machine_names))
