"""Status snapshots of machines."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from vind.core.config import MachineSpec

IPV4_LENGTH = 32


class MachineState(Enum):
    """Lifecycle state of a machine, as derived from the runtime."""

    NOT_CREATED = "Not created"
    STOPPED = "Stopped"
    RUNNING = "Running"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Port:
    """A resolved port: `guest` inside the machine, `host` on the host."""

    guest: int
    host: int

    def to_dict(self) -> dict:
        return {"guest": self.guest, "host": self.host}


@dataclass(frozen=True)
class RuntimeNetwork:
    """A network a container is attached to, as reported by the runtime."""

    name: str
    ip: str = ""
    mask: str = ""
    gateway: str = ""

    @classmethod
    def from_endpoints(cls, networks: Optional[dict[str, Any]]) -> list[RuntimeNetwork]:
        """
        Build runtime networks from an inspect `NetworkSettings.Networks` map.

        Parameters
        ----------
        networks : dict[str, Any]
            Endpoint settings keyed by network name.

        Returns
        -------
        list[RuntimeNetwork]
            One entry per network, in the runtime's order.
        """
        result = []
        for name, endpoint in (networks or {}).items():
            endpoint = endpoint or {}
            prefix_len = int(endpoint.get("IPPrefixLen") or 0)
            mask = str(ipaddress.IPv4Network(f"0.0.0.0/{min(prefix_len, IPV4_LENGTH)}").netmask)
            result.append(
                cls(
                    name=name,
                    ip=endpoint.get("IPAddress") or "",
                    mask=mask,
                    gateway=endpoint.get("Gateway") or "",
                )
            )
        return result

    def to_dict(self) -> dict:
        """Return the JSON mapping, omitting empty fields."""
        data = {"name": self.name, "ip": self.ip, "mask": self.mask, "gateway": self.gateway}
        return {k: v for k, v in data.items() if v}


@dataclass(frozen=True)
class MachineStatus:
    """Point-in-time view of a machine, built for display.

    Attributes
    ----------
    container : str
        Container name.
    machine_name : str
        Machine name (and hostname).
    state : MachineState
        Lifecycle state.
    spec : MachineSpec
        The machine spec, possibly overlaid with live runtime values.
    ports : tuple[Port, ...]
        Guest to host port mappings.
    ip : str
        Comma separated IP addresses, one per runtime network.
    image : str
        Image the machine runs.
    cmd : str
        Command the machine runs.
    runtime_networks : tuple[RuntimeNetwork, ...]
        Networks the container is attached to.
    """

    container: str
    machine_name: str
    state: MachineState
    spec: MachineSpec
    ports: tuple[Port, ...] = field(default_factory=tuple)
    ip: str = ""
    image: str = ""
    cmd: str = ""
    runtime_networks: tuple[RuntimeNetwork, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        """Return the JSON mapping used by the JSON formatter."""
        return {
            "container": self.container,
            "state": self.state.value,
            "spec": self.spec.to_dict(),
            "ports": [p.to_dict() for p in self.ports],
            "machineName": self.machine_name,
            "image": self.image,
            "cmd": self.cmd,
            "ip": self.ip,
            "runtimeNetworks": [n.to_dict() for n in self.runtime_networks],
        }
