"""Cluster configuration model.

A configuration describes one cluster and the machine sets it is made of.
It is serialized as YAML with camelCase keys::

    cluster:
      name: my-cluster
      privateKey: cluster-key
    machineSets:
    - name: ubuntu
      replicas: 3
      spec:
        name: node%d
        image: brightzheng100/vind-ubuntu:22.04
        portMappings:
        - containerPort: 22
          hostPort: 2222
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Optional

import yaml

from vind.core.errors import ConfigError

NAME_PLACEHOLDER = "%d"


@dataclass
class Volume:
    """A volume attached to a machine.

    Attributes
    ----------
    type : str
        One of `bind` or `volume`.
    source : str
        Host path for bind mounts, volume name (or empty for an anonymous
        volume) otherwise.
    destination : str
        Mount point inside the container.
    read_only : bool
        Mount the volume read-only.
    """

    type: str = "volume"
    source: str = ""
    destination: str = ""
    read_only: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> Volume:
        """Build a volume from its YAML mapping."""
        return cls(
            type=str(data.get("type") or "volume"),
            source=str(data.get("source") or ""),
            destination=str(data.get("destination") or ""),
            read_only=bool(data.get("readOnly", False)),
        )

    def to_dict(self) -> dict:
        """Return the YAML mapping for this volume."""
        return {
            "type": self.type,
            "source": self.source,
            "destination": self.destination,
            "readOnly": self.read_only,
        }


@dataclass
class PortMapping:
    """Maps a machine port onto the host.

    Attributes
    ----------
    container_port : int
        The container port to publish.
    host_port : int
        Base host port. Replica `i` of a machine set binds `host_port + i`.
        `0` lets the runtime allocate a free port.
    protocol : str
        `tcp` or `udp`. Empty means `tcp`.
    address : str
        Host address to bind to. Empty means all addresses.
    """

    container_port: int
    host_port: int = 0
    protocol: str = ""
    address: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> PortMapping:
        """Build a port mapping from its YAML mapping."""
        if "containerPort" not in data:
            raise ConfigError(f"Port mapping {data} has no containerPort.")
        return cls(
            container_port=_as_int(data["containerPort"], "containerPort"),
            host_port=_as_int(data.get("hostPort") or 0, "hostPort"),
            protocol=str(data.get("protocol") or ""),
            address=str(data.get("address") or ""),
        )

    def to_dict(self) -> dict:
        """Return the YAML mapping, omitting empty optional fields."""
        data: dict[str, Any] = {}
        if self.protocol:
            data["protocol"] = self.protocol
        if self.address:
            data["address"] = self.address
        if self.host_port:
            data["hostPort"] = self.host_port
        data["containerPort"] = self.container_port
        return data


@dataclass
class MachineSpec:
    """Specification shared by every machine of a machine set.

    `name` is a pattern holding a single `%d`, replaced with the replica
    index. The resulting name is also the machine hostname.
    """

    name: str = "node%d"
    image: str = ""
    user: str = ""
    privileged: bool = False
    volumes: list[Volume] = field(default_factory=list)
    networks: list[str] = field(default_factory=list)
    port_mappings: list[PortMapping] = field(default_factory=list)
    cmd: str = ""
    public_key: str = ""
    backend: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> MachineSpec:
        """Build a machine spec from its YAML mapping."""
        return cls(
            name=str(data.get("name") or "node%d"),
            image=str(data.get("image") or ""),
            user=str(data.get("user") or ""),
            privileged=bool(data.get("privileged", False)),
            volumes=[Volume.from_dict(v) for v in data.get("volumes") or []],
            networks=[str(n) for n in data.get("networks") or []],
            port_mappings=[
                PortMapping.from_dict(p) for p in data.get("portMappings") or []
            ],
            cmd=str(data.get("cmd") or ""),
            public_key=str(data.get("publicKey") or ""),
            backend=str(data.get("backend") or ""),
        )

    def to_dict(self) -> dict:
        """Return the YAML mapping, omitting empty optional fields."""
        data: dict[str, Any] = {"name": self.name, "image": self.image}
        if self.user:
            data["user"] = self.user
        if self.privileged:
            data["privileged"] = self.privileged
        if self.volumes:
            data["volumes"] = [v.to_dict() for v in self.volumes]
        if self.networks:
            data["networks"] = list(self.networks)
        if self.port_mappings:
            data["portMappings"] = [p.to_dict() for p in self.port_mappings]
        if self.cmd:
            data["cmd"] = self.cmd
        if self.public_key:
            data["publicKey"] = self.public_key
        if self.backend:
            data["backend"] = self.backend
        return data

    def validate(self) -> None:
        """
        Check that the name pattern holds exactly one `%d` placeholder.

        Raises
        ------
        ConfigError
            If the name pattern is not valid.
        """
        if self.name.count(NAME_PLACEHOLDER) != 1:
            raise ConfigError(
                f"Machine name '{self.name}' is not valid, it must contain "
                f"exactly one '{NAME_PLACEHOLDER}'."
            )


@dataclass
class MachineSet:
    """A machine template plus a replica count."""

    name: str = "test"
    replicas: int = 0
    spec: MachineSpec = field(default_factory=MachineSpec)

    @classmethod
    def from_dict(cls, data: dict) -> MachineSet:
        """Build a machine set from its YAML mapping."""
        return cls(
            name=str(data.get("name") or "test"),
            replicas=_as_int(data.get("replicas") or 0, "replicas"),
            spec=MachineSpec.from_dict(data.get("spec") or {}),
        )

    def to_dict(self) -> dict:
        """Return the YAML mapping for this machine set."""
        return {
            "name": self.name,
            "replicas": self.replicas,
            "spec": self.spec.to_dict(),
        }

    def validate(self) -> None:
        """Validate the replica count and the machine spec."""
        if self.replicas < 0:
            raise ConfigError(
                f"Machine set '{self.name}' has a negative replica count "
                f"({self.replicas})."
            )
        self.spec.validate()


@dataclass
class ClusterSpec:
    """Cluster-wide settings.

    Attributes
    ----------
    name : str
        Cluster name, used as the container name prefix.
    private_key : str
        Path to the private SSH key used to log into machines. `~` is
        expanded. Optional when every machine names a public key.
    known_hosts : str
        Path to an SSH known_hosts file. Optional.
    """

    name: str = "cluster"
    private_key: str = ""
    known_hosts: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> ClusterSpec:
        """Build the cluster section from its YAML mapping."""
        return cls(
            name=str(data.get("name") or "cluster"),
            private_key=str(data.get("privateKey") or ""),
            known_hosts=str(data.get("knownHosts") or ""),
        )

    def to_dict(self) -> dict:
        """Return the YAML mapping, omitting empty optional fields."""
        data: dict[str, Any] = {"name": self.name}
        if self.private_key:
            data["privateKey"] = self.private_key
        if self.known_hosts:
            data["knownHosts"] = self.known_hosts
        return data


@dataclass
class Config:
    """Top level configuration object."""

    cluster: ClusterSpec = field(default_factory=ClusterSpec)
    machine_sets: list[MachineSet] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Config:
        """Build a configuration from a parsed YAML document."""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a YAML mapping.")
        return cls(
            cluster=ClusterSpec.from_dict(data.get("cluster") or {}),
            machine_sets=[MachineSet.from_dict(s) for s in data.get("machineSets") or []],
        )

    @classmethod
    def from_yaml(cls, data: str | bytes) -> Config:
        """
        Parse a configuration from YAML text.

        Raises
        ------
        ConfigError
            If the text is not valid YAML or does not describe a config.
        """
        try:
            parsed = yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse configuration: {e}") from e
        try:
            return cls.from_dict(parsed)
        except (AttributeError, TypeError) as e:
            raise ConfigError(f"Malformed configuration: {e}") from e

    @classmethod
    def from_file(cls, path: str) -> Config:
        """Read a configuration from a YAML file."""
        try:
            with open(path, "r") as f:
                return cls.from_yaml(f.read())
        except OSError as e:
            raise ConfigError(
                f"Failed to read configuration file '{path}': {e.strerror}",
                "Create one with 'vind config create' or point to an "
                "existing one with --config or the VIND_CONFIG environment "
                "variable.",
            ) from e

    def to_dict(self) -> dict:
        """Return the YAML mapping for this configuration."""
        return {
            "cluster": self.cluster.to_dict(),
            "machineSets": [s.to_dict() for s in self.machine_sets],
        }

    def to_yaml(self) -> str:
        """Serialize the configuration to YAML."""
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    def save(self, path: str) -> None:
        """Write the configuration to a YAML file."""
        with open(path, "w") as f:
            f.write(self.to_yaml())

    def validate(self, logger: Optional[logging.Logger] = None) -> None:
        """
        Validate every machine set.

        Each invalid machine set is logged before the whole configuration
        is rejected.

        Raises
        ------
        ConfigError
            If any machine set is invalid.
        """
        logger = logger or logging.getLogger("vind")
        valid = True
        for machine_set in self.machine_sets:
            try:
                machine_set.validate()
            except ConfigError as e:
                valid = False
                logger.warning(f"Machine set '{machine_set.name}': {e.msg}")
        if not valid:
            raise ConfigError("Configuration file is not valid.")

    def get_value(self, path: str) -> Any:
        """
        Return the value at a dotted/indexed path.

        Parameters
        ----------
        path : str
            A path such as `cluster.name` or
            `machineSets[0].spec.privileged`. Segments may be camelCase or
            snake_case.

        Returns
        -------
        Any
            The value found at `path`.

        Raises
        ------
        ConfigError
            If the path does not resolve.
        """
        value: Any = self
        for key in [k for k in re.split(r'[.\[\]"]+', path) if k]:
            if is_dataclass(value):
                attr = _snake_case(key)
                if attr not in {f.name for f in fields(value)}:
                    raise ConfigError(f"Key '{key}' does not exist.")
                value = getattr(value, attr)
            elif isinstance(value, list):
                try:
                    value = value[int(key)]
                except ValueError as e:
                    raise ConfigError(f"'{key}' is not an index.") from e
                except IndexError as e:
                    raise ConfigError(f"Index {key} is out of range.") from e
            else:
                raise ConfigError(
                    f"Cannot look up '{key}': {value!r} is neither a list nor "
                    f"a mapping."
                )
        return value


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}.")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be an integer, got {value!r}.") from e
