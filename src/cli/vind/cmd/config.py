"""Configuration commands for the vind CLI."""

import copy
import os

import click
import yaml

from vind import settings, utils
from vind.core.config import Config
from vind.core.context import VindContext
from vind.core.errors import UserError

DEFAULT_MACHINE_SET = settings.DEFAULT_CONFIG["machineSets"][0]


@click.group("config", help="Manage the cluster configuration file.")
def cli() -> None:
    pass


@cli.command(
    "create",
    help=(
        "Create a cluster configuration file.\n\n"
        "For example, this writes a cluster of three Ubuntu machines:\n\n"
        "vind config create -n my-cluster -k key -s ubuntu --networks my-network -r 3"
    ),
)
@click.option(
    "-o",
    "--override",
    is_flag=True,
    default=False,
    help="Override the configuration file if it exists.",
)
@click.option(
    "-n",
    "--name",
    default=settings.DEFAULT_CONFIG["cluster"]["name"],
    show_default=True,
    help="Name of the cluster.",
)
@click.option(
    "-k",
    "--key",
    default=settings.DEFAULT_CONFIG["cluster"]["privateKey"],
    show_default=True,
    help="Name of the private and public key files.",
)
@click.option(
    "-s",
    "--machineset",
    default=DEFAULT_MACHINE_SET["name"],
    show_default=True,
    help="Name of the machine set.",
)
@click.option(
    "--networks",
    default="",
    help="Comma separated networks the machines are attached to.",
)
@click.option(
    "-r",
    "--replicas",
    default=DEFAULT_MACHINE_SET["replicas"],
    show_default=True,
    type=click.IntRange(min=0),
    help="Number of machine replicas.",
)
@click.option(
    "-i",
    "--image",
    default=DEFAULT_MACHINE_SET["spec"]["image"],
    show_default=True,
    help="Image the machines run.",
)
@click.option(
    "--privileged",
    is_flag=True,
    default=False,
    help="Create privileged containers.",
)
@click.option(
    "-d",
    "--cmd",
    default="",
    help="Command the machines run. Defaults to /sbin/init.",
)
@utils.exception_handler
@utils.pass_environment()
def create(
    ctx: VindContext,
    override: bool,
    name: str,
    key: str,
    machineset: str,
    networks: str,
    replicas: int,
    image: str,
    privileged: bool,
    cmd: str,
) -> None:
    """Write a configuration file from the defaults and the given options."""
    ctx.initialize()
    data = copy.deepcopy(settings.DEFAULT_CONFIG)
    data["cluster"].update({"name": name, "privateKey": key})
    machine_set = data["machineSets"][0]
    machine_set.update({"name": machineset, "replicas": replicas})
    machine_set["spec"].update({"image": image, "privileged": privileged, "cmd": cmd})
    machine_set["spec"]["networks"] = [n.strip() for n in networks.split(",") if n.strip()]

    config = Config.from_dict(data)
    config.validate(ctx.logger)

    ctx.logger.info(f"Creating config file {ctx.config_file}")
    if os.path.isfile(ctx.config_file) and not override:
        raise UserError(
            f"Configuration file at {ctx.config_file} already exists.",
            "Override it by specifying --override or -o.",
        )
    config.save(ctx.config_file)


@cli.command("get", help="Print a value of the configuration, e.g. machineSets[0].spec.image.")
@click.argument("path")
@utils.exception_handler
@utils.pass_environment()
def get(ctx: VindContext, path: str) -> None:
    ctx.initialize()
    value = ctx.load_config().get_value(path)
    if hasattr(value, "to_dict"):
        value = value.to_dict()
    elif isinstance(value, list):
        value = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]
    if isinstance(value, (dict, list)):
        click.echo(yaml.safe_dump(value, sort_keys=False), nl=False)
    elif isinstance(value, bool):
        click.echo("true" if value else "false")
    else:
        click.echo(value)
