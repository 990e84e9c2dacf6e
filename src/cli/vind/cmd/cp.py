"""Command to copy files between a machine and the host."""

import click

from vind import utils
from vind.core.context import VindContext
from vind.core.errors import UserError


@click.command(
    "cp",
    help=(
        "Copy files or folders between a machine and the host file system:\n\n"
        "vind cp MACHINE_NAME:SRC_PATH HOST_DEST_PATH\n\n"
        "vind cp HOST_SRC_PATH MACHINE_NAME:DEST_PATH"
    ),
)
@click.argument("src")
@click.argument("dest")
@utils.exception_handler
@utils.pass_environment()
def cli(ctx: VindContext, src: str, dest: str) -> None:
    """
    Copy between a machine and the host.

    Exactly one of `src` and `dest` must name a machine.
    """
    ctx.initialize()
    src_machine, src_path = utils.split_machine_path(src)
    dest_machine, dest_path = utils.split_machine_path(dest)
    if bool(src_machine) == bool(dest_machine):
        raise UserError(
            "Either copy from or to a machine is supported.",
            "Prefix exactly one of SRC and DEST with MACHINE_NAME:",
        )

    cluster = ctx.load_cluster()
    if src_machine:
        cluster.copy_from(cluster.machine_by_name(src_machine), src_path, dest_path)
    else:
        cluster.copy_to(src_path, cluster.machine_by_name(dest_machine), dest_path)
