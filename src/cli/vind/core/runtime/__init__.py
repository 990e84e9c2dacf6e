"""Container runtime drivers."""

from vind.core.runtime.base import (
    ContainerRunArgs,
    PortPublish,
    RuntimeDriver,
    VolumeMount,
)
from vind.core.runtime.docker_driver import DockerDriver

__all__ = [
    "ContainerRunArgs",
    "DockerDriver",
    "PortPublish",
    "RuntimeDriver",
    "VolumeMount",
]
