"""Command to display the vind version."""

import click

from vind import utils


@click.command("version", help="Print the vind version.")
def cli() -> None:
    click.echo(f"version: {utils.cli_ver()}")
