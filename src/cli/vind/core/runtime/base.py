"""Runtime driver interface and the run arguments passed through it."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class PortPublish:
    """A single published port.

    Attributes
    ----------
    container_port : int
        Port inside the container.
    host_port : int
        Host port to bind. `0` lets the runtime pick one.
    protocol : str
        `tcp` or `udp`. Empty means `tcp`.
    address : str
        Host address to bind. Empty means all addresses.
    """

    container_port: int
    host_port: int = 0
    protocol: str = ""
    address: str = ""

    @property
    def port_key(self) -> str:
        """Return the `<port>/<proto>` key runtimes index ports by."""
        return f"{self.container_port}/{self.protocol or 'tcp'}"

    def __str__(self) -> str:
        """Render as a docker `-p` argument: `[addr:][host:]port[/proto]`."""
        publish = ""
        if self.address:
            publish += f"{self.address}:"
        if self.host_port:
            publish += f"{self.host_port}:"
        elif self.address:
            publish += ":"
        publish += str(self.container_port)
        if self.protocol:
            publish += f"/{self.protocol}"
        return publish


@dataclass(frozen=True)
class VolumeMount:
    """A mount attached at container creation."""

    type: str
    source: str
    target: str
    read_only: bool = False


@dataclass
class ContainerRunArgs:
    """Everything a driver needs to create a machine container.

    Attributes
    ----------
    name : str
        Container name.
    hostname : str
        Hostname inside the container.
    labels : dict[str, str]
        Labels attached to the container.
    tmpfs : dict[str, str]
        tmpfs mount points and their options.
    mounts : list[VolumeMount]
        Volumes and bind mounts.
    publish : list[PortPublish]
        Published ports.
    privileged : bool
        Run the container privileged.
    network : str
        Network the container is created on.
    network_aliases : list[str]
        Aliases on `network`.
    """

    name: str
    hostname: str
    labels: dict[str, str] = field(default_factory=dict)
    tmpfs: dict[str, str] = field(default_factory=dict)
    mounts: list[VolumeMount] = field(default_factory=list)
    publish: list[PortPublish] = field(default_factory=list)
    privileged: bool = False
    network: str = "bridge"
    network_aliases: list[str] = field(default_factory=list)


class RuntimeDriver(ABC):
    """Operations vind needs from a container runtime.

    Container arguments are container names. Methods raise
    `RuntimeCommandError` when the runtime reports a failure, and
    `DaemonUnreachableError` when the runtime cannot be reached at all.
    """

    @abstractmethod
    def check_daemon(self) -> None:
        """Raise `DaemonUnreachableError` unless the runtime answers."""

    @abstractmethod
    def create(self, image: str, run_args: ContainerRunArgs, cmd: list[str]) -> str:
        """Create (without starting) a container and return its ID."""

    @abstractmethod
    def start(self, name: str) -> None:
        """Start a container."""

    @abstractmethod
    def stop(self, name: str) -> None:
        """Stop a container."""

    @abstractmethod
    def kill(self, name: str, signal: str = "KILL") -> None:
        """Send a signal to a container."""

    @abstractmethod
    def remove(self, name: str, volumes: bool = True) -> None:
        """Remove a container, with its anonymous volumes by default."""

    @abstractmethod
    def inspect_object(self, name: str) -> dict:
        """Return the full inspection document of a container."""

    @abstractmethod
    def pull_if_not_present(self, image: str, retries: int) -> bool:
        """Pull `image` unless present locally. Return True if it was pulled."""

    @abstractmethod
    def connect_network(
        self, container: str, network: str, alias: Optional[str] = None
    ) -> None:
        """Attach a container to an additional network."""

    @abstractmethod
    def run_shell(self, name: str, script: str) -> str:
        """Run a bash script inside a running container and return its output."""

    @abstractmethod
    def copy_to(self, host_path: str, container: str, dest_path: str) -> None:
        """Copy a host path into a container."""

    @abstractmethod
    def copy_from(self, container: str, src_path: str, host_path: str) -> None:
        """Copy a container path to the host."""

    def inspect(self, name: str, field_path: str) -> list[str]:
        """
        Inspect one field of a container.

        Parameters
        ----------
        name : str
            Container name.
        field_path : str
            Dotted path into the inspection document, such as
            `State.Running`. List elements are addressed by index
            (`Mounts.0.Type`) and `.` selects the whole document.

        Returns
        -------
        list[str]
            The rendered value, one entry per output line.
        """
        value = resolve_field_path(self.inspect_object(name), field_path)
        return render_lines(value)


def resolve_field_path(document: Any, path: str) -> Any:
    """
    Walk `path` through nested mappings and lists.

    Missing keys resolve to None.
    """
    value = document
    for key in [k for k in path.strip().split(".") if k]:
        if isinstance(value, dict):
            value = value.get(key)
        elif isinstance(value, list):
            try:
                value = value[int(key)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return value


def render_lines(value: Any) -> list[str]:
    """Render an inspected value the way `docker inspect -f` prints it."""
    if value is None:
        return ["<no value>"]
    if isinstance(value, bool):
        return ["true" if value else "false"]
    if isinstance(value, (dict, list)):
        return [json.dumps(value)]
    return str(value).splitlines() or [""]
