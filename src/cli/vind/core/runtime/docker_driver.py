"""Docker implementation of the runtime driver."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Mapping, Optional

import docker
from docker.errors import APIError, DockerException, ImageNotFound
from docker.types import Mount

from vind.core.errors import DaemonUnreachableError, RuntimeCommandError
from vind.core.runtime.base import ContainerRunArgs, RuntimeDriver
from vind.core.runtime.socket import resolve_docker_socket

if TYPE_CHECKING:
    import logging

    from vind.core.exec.host import HostCommandExecutor

DAEMON_HINT = "Is the Docker daemon running? Check DOCKER_HOST and 'docker context ls'."


class DockerDriver(RuntimeDriver):
    """Drive machine containers through the Docker Engine API.

    File copies go through the `docker cp` CLI on the host.

    Parameters
    ----------
    client : docker.DockerClient | None
        Connected client. `None` means the daemon could not be reached and
        every call raises `DaemonUnreachableError`.
    executor : HostCommandExecutor
        Runs `docker cp`.
    logger : logging.Logger
        Logger for debug output.
    sleep : Callable[[float], None], optional
        Sleep function used between image pull retries.
    """

    def __init__(
        self,
        client: docker.DockerClient | None,
        executor: HostCommandExecutor,
        logger: logging.Logger,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._executor = executor
        self._logger = logger
        self._sleep = sleep

    @classmethod
    def from_environment(
        cls,
        executor: HostCommandExecutor,
        logger: logging.Logger,
        env: Optional[Mapping[str, str]] = None,
    ) -> DockerDriver:
        """
        Build a driver connected to the current Docker context.

        Connection failures are deferred: the returned driver raises
        `DaemonUnreachableError` on first use.
        """
        logger.debug("Attempting to locate Docker socket for current Docker context...")
        try:
            socket = resolve_docker_socket(executor, env)
            logger.debug(f"Docker socket path: {socket}")
            client: docker.DockerClient | None = docker.DockerClient(base_url=socket)
        except (DaemonUnreachableError, DockerException) as e:
            logger.debug(f"Docker client unavailable: {e}")
            client = None
        return cls(client, executor, logger)

    @property
    def client(self) -> docker.DockerClient:
        """Return the Docker client, failing when the daemon is unreachable."""
        if self._client is None:
            raise DaemonUnreachableError("Cannot connect to the Docker daemon.", DAEMON_HINT)
        return self._client

    def check_daemon(self) -> None:
        """Ping the daemon."""
        try:
            self.client.ping()
        except (DockerException, OSError) as e:
            raise DaemonUnreachableError(
                f"Cannot connect to the Docker daemon: {e}", DAEMON_HINT
            ) from e

    def create(self, image: str, run_args: ContainerRunArgs, cmd: list[str]) -> str:
        """Create the machine container and return its ID."""
        api = self.client.api
        port_bindings: dict[str, list[Any]] = {}
        for publish in run_args.publish:
            port_bindings.setdefault(publish.port_key, []).append(self._binding(publish))
        mounts = [
            Mount(
                target=m.target,
                source=m.source or None,
                type=m.type,
                read_only=m.read_only,
            )
            for m in run_args.mounts
        ]

        networking_config = None
        if run_args.network_aliases:
            networking_config = api.create_networking_config(
                {
                    run_args.network: api.create_endpoint_config(
                        aliases=run_args.network_aliases
                    )
                }
            )

        self._logger.debug(f"Creating container {run_args.name} from {image}")
        with self._api_errors(f"Failed to create container {run_args.name}"):
            container = api.create_container(
                image,
                command=cmd,
                name=run_args.name,
                hostname=run_args.hostname,
                labels=run_args.labels,
                tty=True,
                stdin_open=True,
                ports=[
                    (p.container_port, p.protocol) if p.protocol else p.container_port
                    for p in run_args.publish
                ],
                host_config=api.create_host_config(
                    port_bindings=port_bindings,
                    mounts=mounts,
                    tmpfs=run_args.tmpfs,
                    privileged=run_args.privileged,
                    network_mode=run_args.network,
                ),
                networking_config=networking_config,
            )
        return container["Id"]

    def start(self, name: str) -> None:
        with self._api_errors(f"Failed to start container {name}"):
            self.client.api.start(name)

    def stop(self, name: str) -> None:
        with self._api_errors(f"Failed to stop container {name}"):
            self.client.api.stop(name)

    def kill(self, name: str, signal: str = "KILL") -> None:
        with self._api_errors(f"Failed to kill container {name}"):
            self.client.api.kill(name, signal=signal)

    def remove(self, name: str, volumes: bool = True) -> None:
        with self._api_errors(f"Failed to remove container {name}"):
            self.client.api.remove_container(name, v=volumes)

    def inspect_object(self, name: str) -> dict:
        with self._api_errors(f"Failed to inspect container {name}"):
            return self.client.api.inspect_container(name)

    def pull_if_not_present(self, image: str, retries: int) -> bool:
        """
        Pull `image` unless it is already present locally.

        Parameters
        ----------
        image : str
            Image reference.
        retries : int
            Number of pull attempts. Attempt `i` (0-based) that fails is
            followed by an `i + 1` second pause.

        Returns
        -------
        bool
            True if the image was pulled.

        Raises
        ------
        RuntimeCommandError
            If every attempt fails.
        """
        try:
            self.client.images.get(image)
            self._logger.debug(f"Image {image} is present locally")
            return False
        except ImageNotFound:
            pass
        except APIError as e:
            raise RuntimeCommandError(f"Failed to inspect image {image}: {e.explanation}") from e

        last_error: APIError | None = None
        for attempt in range(max(retries, 1)):
            self._logger.info(f"Pulling image: {image} ...")
            try:
                self.client.images.pull(image)
                return True
            except APIError as e:
                last_error = e
                self._logger.warning(f"Failed to pull image {image}: {e.explanation}")
                if attempt < retries - 1:
                    self._sleep(attempt + 1)
        raise RuntimeCommandError(
            f"Failed to pull image {image}: "
            f"{last_error.explanation if last_error else 'unknown error'}"
        )

    def connect_network(
        self, container: str, network: str, alias: Optional[str] = None
    ) -> None:
        with self._api_errors(f"Failed to connect {container} to network {network}"):
            self.client.api.connect_container_to_network(
                container, network, aliases=[alias] if alias else None
            )

    def run_shell(self, name: str, script: str) -> str:
        """Run `script` with `/bin/bash -c` inside the container."""
        with self._api_errors(f"Failed to run a command in container {name}"):
            exit_code, output = self.client.containers.get(name).exec_run(
                ["/bin/bash", "-c", script]
            )
        text = output.decode("utf-8", errors="replace") if output else ""
        if exit_code != 0:
            raise RuntimeCommandError(
                f"Command failed in container {name} with exit code {exit_code}:\n{text}",
                text,
            )
        return text

    def copy_to(self, host_path: str, container: str, dest_path: str) -> None:
        self._executor.execute(["docker", "cp", host_path, f"{container}:{dest_path}"])

    def copy_from(self, container: str, src_path: str, host_path: str) -> None:
        self._executor.execute(["docker", "cp", f"{container}:{src_path}", host_path])

    @staticmethod
    def _binding(publish) -> Any:
        if publish.address:
            if publish.host_port:
                return (publish.address, publish.host_port)
            return (publish.address,)
        return publish.host_port or None

    @contextmanager
    def _api_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except APIError as e:
            raise RuntimeCommandError(f"{action}: {e.explanation or e}") from e
        except DockerException as e:
            raise RuntimeCommandError(f"{action}: {e}") from e
        except OSError as e:
            raise DaemonUnreachableError(f"{action}: {e}", DAEMON_HINT) from e
