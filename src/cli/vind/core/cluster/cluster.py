"""Cluster: enumerates the machines a configuration describes and dispatches
operations to them."""

from __future__ import annotations

import copy
import dataclasses
import logging
import os
from collections.abc import Callable, Iterator
from typing import Optional

from vind import settings
from vind.core.cluster.machine import Machine
from vind.core.cluster.ssh import SSHConnector, build_ssh_args
from vind.core.cluster.status import RuntimeNetwork
from vind.core.config import Config, MachineSet, MachineSpec, PortMapping, Volume
from vind.core.errors import ConfigError, MachineNotFoundError, UserError
from vind.core.exec.host import HostCommandExecutor
from vind.core.keystore import KeyStore
from vind.core.runtime.base import RuntimeDriver, resolve_field_path
from vind.core.runtime.docker_driver import DockerDriver


class Cluster:
    """A named group of machine sets.

    The cluster keeps its own copy of the configuration it was built from.
    Machines are never stored: every operation derives them again from the
    configuration and a replica index.

    Parameters
    ----------
    config : Config
        Cluster configuration. Validated and deep-copied.
    logger : logging.Logger, optional
        Defaults to the `vind` logger.
    driver : RuntimeDriver, optional
        Container runtime. Defaults to a Docker driver for the current
        Docker context, built on first use.
    key_store : KeyStore, optional
        Store of named public keys referenced by machine specs.
    executor : HostCommandExecutor, optional
        Runs host commands (`ssh-keygen`, `ssh`).
    ssh_connector : SSHConnector, optional
        Logs into machines.

    Raises
    ------
    ConfigError
        If the configuration is not valid.
    """

    def __init__(
        self,
        config: Config,
        logger: Optional[logging.Logger] = None,
        driver: Optional[RuntimeDriver] = None,
        key_store: Optional[KeyStore] = None,
        executor: Optional[HostCommandExecutor] = None,
        ssh_connector: Optional[SSHConnector] = None,
    ) -> None:
        self._logger = logger or logging.getLogger("vind")
        config = copy.deepcopy(config)
        config.validate(self._logger)
        self.config = config
        self._driver = driver
        self._key_store = key_store
        self._executor = executor or HostCommandExecutor(self._logger)
        self._ssh = ssh_connector or SSHConnector(self._executor, self._logger)

    @classmethod
    def from_yaml(cls, data: str | bytes, **kwargs) -> Cluster:
        """Build a cluster from YAML configuration text."""
        return cls(Config.from_yaml(data), **kwargs)

    @classmethod
    def from_file(cls, path: str, **kwargs) -> Cluster:
        """Build a cluster from a YAML configuration file."""
        return cls(Config.from_file(path), **kwargs)

    @property
    def name(self) -> str:
        """Cluster name."""
        return self.config.cluster.name

    @property
    def driver(self) -> RuntimeDriver:
        """Container runtime driver."""
        if self._driver is None:
            self._driver = DockerDriver.from_environment(self._executor, self._logger)
        return self._driver

    def set_key_store(self, key_store: KeyStore) -> Cluster:
        """Attach a key store of per-machine public keys."""
        self._key_store = key_store
        return self

    def save(self, path: str) -> None:
        """Write the cluster configuration to `path`."""
        self.config.save(path)

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------
    def _machine(self, machine_set: MachineSet, index: int) -> Machine:
        return Machine(
            self.name,
            machine_set.name,
            machine_set.spec,
            index,
            self.driver,
            logger=self._logger,
            executor=self._executor,
        )

    def machines(self) -> Iterator[Machine]:
        """Yield every machine, set by set, in replica order."""
        for machine_set in self.config.machine_sets:
            for index in range(machine_set.replicas):
                yield self._machine(machine_set, index)

    def _for_each_machine(self, action: Callable[[Machine], None]) -> None:
        for machine in self.machines():
            action(machine)

    def _for_specific_machines(
        self, action: Callable[[Machine], None], machine_names: list[str]
    ) -> None:
        found = dict.fromkeys(machine_names, False)
        for machine in self.machines():
            if machine.machine_name in found:
                action(machine)
                found[machine.machine_name] = True
        for name, handled in found.items():
            if not handled:
                self._logger.warning(f"Machine {name} does not exist")

    def _dispatch(
        self, action: Callable[[Machine], None], machine_names: Optional[list[str]]
    ) -> None:
        if machine_names:
            self._for_specific_machines(action, list(machine_names))
        else:
            self._for_each_machine(action)

    def machine_by_name(self, machine_name: str) -> Machine:
        """
        Return the machine called `machine_name`.

        Raises
        ------
        MachineNotFoundError
            If no machine has that name.
        """
        for machine in self.machines():
            if machine.machine_name == machine_name:
                return machine
        raise MachineNotFoundError(machine_name)

    def first_machine(self) -> Machine:
        """
        Return replica 0 of the first machine set.

        Raises
        ------
        UserError
            If no machine set is configured.
        """
        if not self.config.machine_sets:
            raise UserError(
                "No machine set is configured.",
                "Add a machine set to the configuration file.",
            )
        return self._machine(self.config.machine_sets[0], 0)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def create(self) -> None:
        """
        Create every machine of the cluster.

        Generates the cluster SSH key pair if needed, checks the runtime,
        pulls missing images and then creates the machines one by one. The
        first failure stops the sweep.
        """
        self.ensure_ssh_key()
        self.driver.check_daemon()
        for machine_set in self.config.machine_sets:
            self.driver.pull_if_not_present(
                machine_set.spec.image, settings.IMAGE_PULL_RETRIES
            )

        def create_machine(machine: Machine) -> None:
            machine.create(self.public_key(machine.spec))

        self._for_each_machine(create_machine)

    def delete(self) -> None:
        """Delete every machine of the cluster."""
        self.driver.check_daemon()
        self._for_each_machine(lambda m: m.delete())

    def start(self, machine_names: Optional[list[str]] = None) -> None:
        """Start the named machines, or all of them."""
        self.driver.check_daemon()
        self._dispatch(lambda m: m.start(), machine_names)

    def stop(self, machine_names: Optional[list[str]] = None) -> None:
        """Stop the named machines, or all of them."""
        self.driver.check_daemon()
        self._dispatch(lambda m: m.stop(), machine_names)

    def show(self, machine_names: Optional[list[str]] = None) -> list[Machine]:
        """
        Return the created machines, overlaid with live runtime details.

        Parameters
        ----------
        machine_names : list[str], optional
            Only consider these machines. All machines when empty.

        Returns
        -------
        list[Machine]
            Created machines whose spec copy carries the published ports,
            mounts and command reported by the runtime.
        """
        self.driver.check_daemon()
        machines = []
        for machine in self.machines():
            if machine_names and machine.machine_name not in machine_names:
                continue
            if not machine.is_created():
                self._logger.warning(f"Machine not created: {machine.machine_name}")
                continue
            document = self.driver.inspect_object(machine.container_name)
            machine.spec = _overlay_spec(machine.spec, document)
            machine.runtime_networks = RuntimeNetwork.from_endpoints(
                resolve_field_path(document, "NetworkSettings.Networks")
            )
            machines.append(machine)
        return machines

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------
    def ssh(
        self,
        machine: Machine,
        username: str,
        extra_args: Optional[list[str]] = None,
    ) -> None:
        """
        Log into `machine` as `username`.

        Raises
        ------
        ConfigError
            If the cluster has no private key.
        SSHError
            If ssh fails.
        """
        self._logger.info(
            f"SSH into machine [{machine.machine_name}] with user [{username}]"
        )
        if not self.config.cluster.private_key:
            raise ConfigError(
                "No SSH private key is configured for the cluster.",
                "Set cluster.privateKey in the configuration file.",
            )
        host_port = machine.host_port(settings.SSH_PORT)
        remote = machine.port_mapping(settings.SSH_PORT).address or "localhost"

        auto_cd = ""
        if extra_args:
            self._logger.info(f"With extra SSH args: {' '.join(extra_args)}")
        else:
            auto_cd = machine.auto_cd_to()
            if auto_cd:
                self._logger.info(f"Trying to cd into: {auto_cd}")

        args = build_ssh_args(
            os.path.expanduser(self.config.cluster.private_key),
            host_port,
            username,
            remote,
            extra_args=extra_args,
            auto_cd=auto_cd,
        )
        self._ssh.connect(args)

    def copy_from(self, machine: Machine, src_path: str, dest_path: str) -> None:
        """Copy `src_path` out of `machine` to `dest_path` on the host."""
        self.driver.copy_from(machine.container_name, src_path, dest_path)

    def copy_to(self, src_path: str, machine: Machine, dest_path: str) -> None:
        """Copy host `src_path` into `machine` at `dest_path`."""
        self.driver.copy_to(src_path, machine.container_name, dest_path)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    def ensure_ssh_key(self) -> None:
        """Generate the cluster key pair if its private key is missing."""
        if not self.config.cluster.private_key:
            return
        path = os.path.expanduser(self.config.cluster.private_key)
        if os.path.exists(path):
            return
        self._logger.info(f"Creating SSH key: {path} ...")
        self._executor.execute(
            [
                "ssh-keygen", "-q",
                "-t", "rsa",
                "-b", str(settings.SSH_KEY_BITS),
                "-C", f"{self.name}@vind.mail",
                "-f", path,
                "-N", "",
            ]  # fmt: skip
        )

    def public_key(self, spec: MachineSpec) -> bytes:
        """
        Return the public key to install on machines built from `spec`.

        A key named by the spec and found in the key store wins over the
        cluster key pair.

        Raises
        ------
        ConfigError
            If no key source is configured or the cluster public key cannot
            be read.
        KeyStoreError
            If the named key is not in the key store.
        """
        if spec.public_key and self._key_store is not None:
            return self._key_store.get(spec.public_key) + b"\n"

        if not self.config.cluster.private_key:
            raise ConfigError(
                "No SSH key provided.",
                "Set cluster.privateKey, or a machine publicKey stored in the key store.",
            )
        path = os.path.expanduser(self.config.cluster.private_key) + ".pub"
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise ConfigError(f"Can't read public key {path}: {e.strerror}") from e


def _overlay_spec(spec: MachineSpec, document: dict) -> MachineSpec:
    port_mappings = []
    for key, bindings in (resolve_field_path(document, "NetworkSettings.Ports") or {}).items():
        if not bindings:
            continue
        port, _, protocol = key.partition("/")
        port_mappings.append(
            PortMapping(
                container_port=int(port),
                host_port=int(bindings[0].get("HostPort") or 0),
                protocol="" if protocol in ("", "tcp") else protocol,
                address=bindings[0].get("HostIp") or "",
            )
        )
    volumes = [
        Volume(
            type=mount.get("Type") or "",
            source=mount.get("Source") or "",
            destination=mount.get("Destination") or "",
            read_only=not mount.get("RW", True),
        )
        for mount in resolve_field_path(document, "Mounts") or []
    ]
    cmd = " ".join(resolve_field_path(document, "Config.Cmd") or [])
    return dataclasses.replace(spec, port_mappings=port_mappings, volumes=volumes, cmd=cmd)
