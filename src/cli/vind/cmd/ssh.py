"""Command to SSH into a machine."""

import click

from vind import utils
from vind.core.context import VindContext


@click.command(
    "ssh",
    help=(
        "SSH into a machine. Extra arguments are passed to the remote "
        "command, e.g.:\n\n"
        "vind ssh root@ubuntu-node0 -- uname -a"
    ),
    context_settings={"ignore_unknown_options": True},
)
@click.argument("target", metavar="[USER@]MACHINE_NAME")
@click.argument("ssh_args", nargs=-1, type=click.UNPROCESSED)
@utils.exception_handler
@utils.pass_environment()
def cli(ctx: VindContext, target: str, ssh_args: tuple[str, ...]) -> None:
    ctx.initialize()
    cluster = ctx.load_cluster()
    user, machine_name = utils.split_user_machine(target, default_user="")
    machine = cluster.machine_by_name(machine_name)
    cluster.ssh(machine, user or machine.user, list(ssh_args))
