"""A single machine: one replica of a machine set, backed by one container."""

from __future__ import annotations

import logging
import os
import shlex
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Optional

from vind import settings
from vind.core.cluster import identity
from vind.core.cluster.status import MachineState, MachineStatus, Port, RuntimeNetwork
from vind.core.config import MachineSpec, PortMapping
from vind.core.errors import RuntimeCommandError, VindError
from vind.core.runtime.base import ContainerRunArgs, VolumeMount, resolve_field_path

if TYPE_CHECKING:
    from vind.core.exec.host import HostCommandExecutor
    from vind.core.runtime.base import RuntimeDriver


class Machine:
    """Handle on one replica of a machine set.

    A machine is cheap to build and holds no authoritative state: whether it
    exists, runs, or which host port it got is always asked of the runtime.
    Only resolved host ports and runtime networks are memoized on the
    instance.

    Parameters
    ----------
    cluster_name : str
        Name of the owning cluster.
    machine_set_name : str
        Name of the owning machine set.
    spec : MachineSpec
        The machine set's spec. Shared with the owning cluster's config.
    index : int
        Replica index.
    driver : RuntimeDriver
        Runtime used for every container operation.
    logger : logging.Logger, optional
        Defaults to the `vind` logger.
    executor : HostCommandExecutor, optional
        Host command executor, needed by `host_key()`.
    sleep : Callable[[float], None], optional
        Sleep function used before host key scans.
    """

    def __init__(
        self,
        cluster_name: str,
        machine_set_name: str,
        spec: MachineSpec,
        index: int,
        driver: RuntimeDriver,
        logger: Optional[logging.Logger] = None,
        executor: Optional[HostCommandExecutor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cluster_name = cluster_name
        self.machine_set_name = machine_set_name
        self.spec = spec
        self.index = index
        self.container_name = identity.container_name(
            cluster_name, machine_set_name, spec.name, index
        )
        self.machine_name = identity.machine_name(machine_set_name, spec.name, index)
        self.runtime_networks: list[RuntimeNetwork] = []
        self._ports: dict[int, int] = {}
        self._driver = driver
        self._logger = logger or logging.getLogger("vind")
        self._executor = executor
        self._sleep = sleep

    def __repr__(self) -> str:
        return f"<Machine {self.machine_name} container={self.container_name}>"

    @property
    def user(self) -> str:
        """Login user, `root` unless the spec names one."""
        return self.spec.user or settings.DEFAULT_USER

    @property
    def command(self) -> list[str]:
        """Container command, `/sbin/init` unless the spec names one."""
        if self.spec.cmd.strip():
            return shlex.split(self.spec.cmd)
        return list(settings.DEFAULT_CMD)

    def container_run_args(self) -> ContainerRunArgs:
        """Build the arguments used to create this machine's container."""
        args = ContainerRunArgs(
            name=self.container_name,
            hostname=self.machine_name,
            labels={
                settings.CREATOR_LABEL: settings.CREATOR,
                settings.CLUSTER_LABEL: self.cluster_name,
                settings.INDEX_LABEL: str(self.index),
            },
            tmpfs=dict(settings.TMPFS_MOUNTS),
            mounts=[
                VolumeMount(
                    type=v.type,
                    source=v.source,
                    target=v.destination,
                    read_only=v.read_only,
                )
                for v in self.spec.volumes
            ],
            publish=[identity.publish_spec(m, self.index) for m in self.spec.port_mappings],
            privileged=self.spec.privileged,
        )
        if self.spec.networks:
            network = self.spec.networks[0]
            self._logger.info(f"Connecting {self.machine_name} to the {network} network...")
            args.network = network
            if network != settings.DEFAULT_NETWORK:
                args.network_aliases = [self.machine_name]
        return args

    def create(self, public_key: bytes) -> None:
        """
        Create, start and provision the machine.

        Does nothing when the container already exists. A failure part way
        leaves the container as the last successful step left it.

        Parameters
        ----------
        public_key : bytes
            Public key appended to the machine user's `authorized_keys`.
        """
        self._logger.info(f"Creating machine: {self.container_name} ...")
        if self.is_created():
            self._logger.info(f"Machine {self.container_name} is already created...")
            return

        self._driver.create(self.spec.image, self.container_run_args(), self.command)

        for network in self.spec.networks[1:]:
            self._logger.info(f"Connecting {self.machine_name} to the {network} network...")
            alias = None if network == settings.DEFAULT_NETWORK else self.machine_name
            self._driver.connect_network(self.container_name, network, alias)

        self._logger.info(f"Starting machine {self.machine_name}...")
        self._driver.start(self.container_name)

        self._driver.run_shell(self.container_name, settings.INIT_SCRIPT.format(user=self.user))
        self._append_authorized_key(public_key)

    def _append_authorized_key(self, public_key: bytes) -> None:
        if self.user == "root":
            key_path = settings.KEY_PATH_ROOT
        else:
            key_path = settings.KEY_PATH_NORMAL.format(user=self.user)
        key = public_key.decode("utf-8")
        if not key.endswith("\n"):
            key += "\n"
        self._driver.run_shell(
            self.container_name, f"cat <<__EOF | tee -a {key_path}\n{key}__EOF"
        )

    def start(self) -> None:
        """Start the machine unless it is missing or already running."""
        if not self.is_created():
            self._logger.info(f"Machine {self.machine_name} hasn't been created...")
            return
        if self.is_started():
            self._logger.info(f"Machine {self.machine_name} is already started...")
            return
        self._logger.info(f"Starting machine: {self.machine_name} ...")
        self._driver.start(self.container_name)

    def stop(self) -> None:
        """Stop the machine unless it is missing or already stopped."""
        if not self.is_created():
            self._logger.info(f"Machine {self.container_name} hasn't been created...")
            return
        if not self.is_started():
            self._logger.info(f"Machine {self.container_name} is already stopped...")
            return
        self._logger.info(f"Stopping machine: {self.container_name} ...")
        self._driver.stop(self.container_name)

    def delete(self) -> None:
        """
        Remove the machine and its volumes, killing it first if running.

        Raises
        ------
        RuntimeCommandError
            If the running state cannot be read. Nothing is removed then.
        """
        if not self.is_created():
            self._logger.info(f"Machine {self.machine_name} hasn't been created")
            return
        if self._running():
            self._logger.info(
                f"Machine {self.machine_name} is started, stopping and deleting machine..."
            )
            self._driver.kill(self.container_name, "KILL")
        else:
            self._logger.info(f"Deleting machine: {self.machine_name} ...")
        self._driver.remove(self.container_name, volumes=True)

    def is_created(self) -> bool:
        """Return True if the runtime knows a container with this name."""
        try:
            lines = self._driver.inspect(self.container_name, "Name")
        except RuntimeCommandError:
            return False
        return bool(lines and lines[0])

    def is_started(self) -> bool:
        """Return True if the container is running."""
        try:
            return self._running()
        except RuntimeCommandError:
            return False

    def _running(self) -> bool:
        lines = self._driver.inspect(self.container_name, "State.Running")
        return bool(lines) and lines[0].strip("'").lower() == "true"

    def port_mapping(self, container_port: int) -> PortMapping:
        """
        Return the declared mapping for `container_port`.

        Raises
        ------
        VindError
            If the spec does not publish `container_port`.
        """
        for mapping in self.spec.port_mappings:
            if mapping.container_port == container_port:
                return mapping
        raise VindError(
            f"Machine {self.machine_name} does not publish container port {container_port}."
        )

    def host_port(self, container_port: int) -> int:
        """
        Return the host port bound to `container_port/tcp`.

        The first successful lookup is cached on the instance.

        Raises
        ------
        VindError
            If the runtime cannot be queried or does not report exactly one
            integer port.
        """
        if container_port in self._ports:
            return self._ports[container_port]

        field_path = f"NetworkSettings.Ports.{container_port}/tcp.0.HostPort"
        try:
            lines = self._driver.inspect(self.container_name, field_path)
        except RuntimeCommandError as e:
            raise VindError(
                f"hostport: failed to inspect container {self.container_name}: {e}"
            ) from e
        if len(lines) != 1:
            raise VindError(f"hostport: should only be one line, got {len(lines)} lines")
        try:
            host_port = int(lines[0].replace("'", ""))
        except ValueError as e:
            raise VindError(
                f"hostport: failed to parse '{lines[0]}' as a port for {self.machine_name}"
            ) from e

        self._ports[container_port] = host_port
        return host_port

    def networks(self) -> list[RuntimeNetwork]:
        """Return the container's runtime networks, inspecting once."""
        if self.runtime_networks:
            return self.runtime_networks
        document = self._driver.inspect_object(self.container_name)
        self.runtime_networks = RuntimeNetwork.from_endpoints(
            resolve_field_path(document, "NetworkSettings.Networks")
        )
        return self.runtime_networks

    def ip(self) -> list[str]:
        """Return the IP address of every known runtime network."""
        return [n.ip for n in self.runtime_networks]

    def status(self) -> MachineStatus:
        """
        Build a status snapshot of the machine.

        Query failures are logged at debug level and leave the affected
        fields at their defaults.
        """
        state = MachineState.NOT_CREATED
        created = False
        try:
            created = self.is_created()
            if created:
                state = MachineState.RUNNING if self.is_started() else MachineState.STOPPED
        except VindError as e:
            self._logger.debug(f"Failed to query state of {self.machine_name}: {e}")

        ports = []
        if created:
            for mapping in self.spec.port_mappings:
                try:
                    host_port = self.host_port(mapping.container_port)
                except VindError as e:
                    self._logger.debug(str(e))
                    host_port = 0
                ports.append(Port(guest=mapping.container_port, host=host_port))
        if not ports:
            ports = [
                Port(
                    guest=mapping.container_port,
                    host=identity.effective_host_port(mapping, self.index),
                )
                for mapping in self.spec.port_mappings
            ]

        if created:
            try:
                self.networks()
            except VindError as e:
                self._logger.debug(f"Failed to inspect networks of {self.machine_name}: {e}")

        return MachineStatus(
            container=self.container_name,
            machine_name=self.machine_name,
            state=state,
            spec=self.spec,
            ports=tuple(ports),
            ip=",".join(self.ip()),
            image=self.spec.image,
            cmd=self.spec.cmd,
            runtime_networks=tuple(self.runtime_networks),
        )

    def auto_cd_to(self) -> str:
        """
        Return the directory to `cd` into on login.

        When the host filesystem is bind mounted at `/host`, this is the
        current working directory as seen from inside the machine.
        Otherwise it is empty.
        """
        for volume in self.spec.volumes:
            if volume.type == "bind" and volume.destination == settings.HOST_MOUNT_POINT:
                try:
                    cwd = os.getcwd()
                except OSError as e:
                    self._logger.warning(f"Can't get current working directory: {e}")
                    cwd = ""
                return f"{settings.HOST_MOUNT_POINT}{cwd}"
        return ""

    def host_key(self) -> str:
        """
        Scan the machine's RSA host key with `ssh-keyscan`.

        Returns
        -------
        str
            The `ssh-keyscan` output.
        """
        if self._executor is None:
            raise VindError("A host command executor is required to scan host keys.")
        host_port = self.host_port(settings.SSH_PORT)
        remote = self.port_mapping(settings.SSH_PORT).address or "localhost"
        self._sleep(settings.HOST_KEY_SCAN_DELAY)
        result = self._executor.execute(
            ["ssh-keyscan", "-t", "rsa", "-p", str(host_port), remote],
            combine_output=False,
        )
        return result.output
