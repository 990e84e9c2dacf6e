"""Command to show cluster machines."""

import click

from vind import utils
from vind.core.context import VindContext
from vind.core.formatters import OutputFormat, render


@click.command(
    "show",
    help=(
        "Show the created cluster machines, or only the named ones. Also "
        "available as 'status'."
    ),
)
@click.argument("machine_names", nargs=-1, metavar="[MACHINE_NAME]...")
@click.option(
    "-o",
    "--output",
    type=click.Choice([f.value for f in OutputFormat], case_sensitive=False),
    default=OutputFormat.TABLE.value,
    show_default=True,
    help="Output format.",
)
@utils.exception_handler
@utils.pass_environment()
def cli(ctx: VindContext, machine_names: tuple[str, ...], output: str) -> None:
    """
    Print machine status to stdout.

    Parameters
    ----------
    machine_names : tuple[str, ...]
        Machines to show. All machines when empty.
    output : str
        One of `table`, `json`, `ansible` or `ssh`.
    """
    ctx.initialize()
    cluster = ctx.load_cluster()
    statuses = [m.status() for m in cluster.show(list(machine_names))]
    click.echo(
        render(
            OutputFormat.from_name(output),
            statuses,
            cluster_name=cluster.name,
            private_key=cluster.config.cluster.private_key,
        ),
        nl=False,
    )
