"""Command to delete the cluster's machines."""

import click

from vind import utils
from vind.core.context import VindContext


@click.command(
    "delete",
    help="Delete every machine of the cluster, together with its volumes.",
)
@utils.exception_handler
@utils.pass_environment()
def cli(ctx: VindContext) -> None:
    ctx.initialize()
    ctx.load_cluster().delete()
