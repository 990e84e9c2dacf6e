"""Machine identity and host port derivation.

Names and ports are pure functions of the cluster name, the machine set
name, the machine name pattern and the replica index, so two machines built
for the same replica always agree.
"""

from vind.core.config import NAME_PLACEHOLDER, PortMapping
from vind.core.errors import ConfigError
from vind.core.runtime.base import PortPublish


def substitute(pattern: str, index: int) -> str:
    """
    Replace the `%d` placeholder of `pattern` with `index`.

    Raises
    ------
    ConfigError
        If `pattern` has no placeholder.
    """
    if NAME_PLACEHOLDER not in pattern:
        raise ConfigError(
            f"Machine name '{pattern}' has no '{NAME_PLACEHOLDER}' placeholder "
            f"for the replica index."
        )
    return pattern.replace(NAME_PLACEHOLDER, str(index), 1)


def machine_name(machine_set: str, pattern: str, index: int) -> str:
    """Return `<set>-<pattern with index>`, also used as hostname."""
    return f"{machine_set}-{substitute(pattern, index)}"


def container_name(cluster: str, machine_set: str, pattern: str, index: int) -> str:
    """Return `<cluster>-<set>-<pattern with index>`."""
    return f"{cluster}-{machine_name(machine_set, pattern, index)}"


def effective_host_port(mapping: PortMapping, index: int) -> int:
    """
    Return the host port replica `index` binds for `mapping`.

    A declared host port is offset by the replica index so replicas of the
    same set never share it. An undeclared (`0`) host port stays `0` and is
    left to the runtime.
    """
    if not mapping.host_port:
        return 0
    return mapping.host_port + index


def publish_spec(mapping: PortMapping, index: int) -> PortPublish:
    """Return the port publish request for replica `index`."""
    return PortPublish(
        container_port=mapping.container_port,
        host_port=effective_host_port(mapping, index),
        protocol=mapping.protocol,
        address=mapping.address,
    )
