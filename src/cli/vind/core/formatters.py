"""Render machine status snapshots for display."""

from __future__ import annotations

import json
import os
from enum import Enum

import yaml
from tabulate import tabulate

from vind import settings
from vind.core.cluster.status import MachineStatus
from vind.core.errors import UserError

SSH_COMMON_OPTIONS = {
    "UserKnownHostsFile": "/dev/null",
    "StrictHostKeyChecking": "no",
}

TABLE_HEADERS = ["CONTAINER NAME", "MACHINE NAME", "PORTS", "IP", "IMAGE", "CMD", "STATE"]


class OutputFormat(Enum):
    """Output formats of `vind show`."""

    TABLE = "table"
    JSON = "json"
    ANSIBLE = "ansible"
    SSH = "ssh"

    @classmethod
    def from_name(cls, name: str) -> OutputFormat:
        """
        Resolve a format from its name.

        Raises
        ------
        UserError
            If the name is unknown.
        """
        try:
            return cls(name.lower())
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise UserError(f"Unknown formatter '{name}'.", f"Use one of: {choices}.")


def render(
    output_format: OutputFormat,
    statuses: list[MachineStatus],
    cluster_name: str = "",
    private_key: str = "",
) -> str:
    """
    Render `statuses` in `output_format`.

    Parameters
    ----------
    output_format : OutputFormat
        Target format.
    statuses : list[MachineStatus]
        Machines to render.
    cluster_name : str, optional
        Cluster name, used as the Ansible group name.
    private_key : str, optional
        Cluster private key path, referenced by the Ansible and SSH
        formats. `~` is expanded.

    Returns
    -------
    str
        The rendered text, newline terminated.
    """
    renderers = {
        OutputFormat.TABLE: lambda: render_table(statuses),
        OutputFormat.JSON: lambda: render_json(statuses),
        OutputFormat.ANSIBLE: lambda: render_ansible(statuses, cluster_name, private_key),
        OutputFormat.SSH: lambda: render_ssh_config(statuses, private_key),
    }
    return renderers[output_format]()


def render_table(statuses: list[MachineStatus]) -> str:
    """Render statuses as a plain text table, one row per machine."""
    rows = []
    for s in statuses:
        ports = [f"{p.host}->{p.guest}" for p in s.ports]
        if not ports:
            ports = [f"{p.host_port}->{p.container_port}" for p in s.spec.port_mappings]
        rows.append(
            [s.container, s.machine_name, ",".join(ports), s.ip, s.image, s.cmd, s.state.value]
        )
    return tabulate(rows, headers=TABLE_HEADERS, stralign="left", tablefmt="plain") + "\n"


def render_json(statuses: list[MachineStatus]) -> str:
    """Render statuses as indented JSON under a `machines` key."""
    return json.dumps({"machines": [s.to_dict() for s in statuses]}, indent=2) + "\n"


def _login(status: MachineStatus) -> tuple[str, int]:
    user = status.spec.user or settings.DEFAULT_USER
    port = status.ports[0].host if status.ports else 0
    return user, port


def render_ansible(statuses: list[MachineStatus], cluster_name: str, private_key: str) -> str:
    """Render an Ansible inventory with one group named after the cluster."""
    key_path = os.path.expanduser(private_key)
    common_args = " ".join(f"-o {k}={v}" for k, v in SSH_COMMON_OPTIONS.items())
    hosts = {}
    for s in statuses:
        user, port = _login(s)
        hosts[s.machine_name] = {
            "ansible_host": "localhost",
            "ansible_port": port,
            "ansible_user": user,
            "ansible_connection": "ssh",
            "ansible_ssh_private_key_file": key_path,
            "ansible_ssh_common_args": common_args,
        }
    return yaml.safe_dump({cluster_name: {"hosts": hosts}}, default_flow_style=False)


def render_ssh_config(statuses: list[MachineStatus], private_key: str) -> str:
    """Render one OpenSSH `Host` block per machine."""
    key_path = os.path.expanduser(private_key)
    blocks = []
    for s in statuses:
        user, port = _login(s)
        options = {
            "Hostname": "localhost",
            "Port": port,
            "User": user,
            "IdentityFile": key_path,
            **SSH_COMMON_OPTIONS,
        }
        lines = [f"Host {s.machine_name}"] + [f"    {k} {v}" for k, v in options.items()]
        blocks.append("\n".join(lines) + "\n")
    return "".join(blocks)
