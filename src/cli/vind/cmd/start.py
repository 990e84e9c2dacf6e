"""Command to start machines."""

import click

from vind import utils
from vind.core.context import VindContext


@click.command(
    "start",
    help=(
        "Start all cluster machines, or only the named ones, e.g.:\n\n"
        "vind start ubuntu-node0 ubuntu-node1"
    ),
)
@click.argument("machine_names", nargs=-1, metavar="[MACHINE_NAME]...")
@utils.exception_handler
@utils.pass_environment()
def cli(ctx: VindContext, machine_names: tuple[str, ...]) -> None:
    """
    Start machines.

    Parameters
    ----------
    machine_names : tuple[str, ...]
        Machines to start. All machines when empty.
    """
    ctx.initialize()
    ctx.load_cluster().start(list(machine_names))
