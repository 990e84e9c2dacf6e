"""Command to create the cluster's machines."""

import click

from vind import utils
from vind.core.context import VindContext


@click.command(
    "create",
    help=(
        "Create the cluster described by the configuration file. Machines "
        "that already exist are left untouched."
    ),
)
@utils.exception_handler
@utils.pass_environment()
def cli(ctx: VindContext) -> None:
    """Create every machine of the cluster."""
    ctx.initialize()
    ctx.load_cluster().create()
