"""Pytest configuration and fixtures for vind unit tests.

Provides an in-memory runtime driver so lifecycle logic can be exercised
without a Docker daemon.
"""

import copy
from unittest.mock import Mock

import pytest
from click.testing import CliRunner

from vind.core.config import Config
from vind.core.errors import DaemonUnreachableError, RuntimeCommandError
from vind.core.runtime.base import ContainerRunArgs, RuntimeDriver

E2E_CONFIG = {
    "cluster": {"name": "c"},
    "machineSets": [
        {
            "name": "set",
            "replicas": 2,
            "spec": {
                "name": "node%d",
                "image": "img",
                "portMappings": [{"containerPort": 22, "hostPort": 2222}],
            },
        }
    ],
}


class FakeRuntimeDriver(RuntimeDriver):
    """Runtime driver keeping containers in a dict.

    Every call is recorded in `calls` as `(method, args...)`.
    """

    def __init__(self, daemon_up=True, images=()):
        self.daemon_up = daemon_up
        self.images = set(images)
        self.containers = {}
        self.scripts = {}
        self.calls = []
        self._next_port = 32768
        self._next_ip = 2

    def calls_to(self, method):
        return [c for c in self.calls if c[0] == method]

    def check_daemon(self):
        self.calls.append(("check_daemon",))
        if not self.daemon_up:
            raise DaemonUnreachableError("Cannot connect to the Docker daemon.")

    def create(self, image, run_args: ContainerRunArgs, cmd):
        self.calls.append(("create", image, run_args, cmd))
        if run_args.name in self.containers:
            raise RuntimeCommandError(f"Conflict. The container name {run_args.name} is in use.")
        ports = {}
        for publish in run_args.publish:
            host_port = publish.host_port
            if not host_port:
                host_port = self._next_port
                self._next_port += 1
            ports.setdefault(publish.port_key, []).append(
                {"HostIp": publish.address or "0.0.0.0", "HostPort": str(host_port)}
            )
        self.containers[run_args.name] = {
            "Id": f"id-{run_args.name}",
            "Name": f"/{run_args.name}",
            "State": {"Running": False},
            "Config": {"Image": image, "Cmd": list(cmd), "Labels": dict(run_args.labels)},
            "Mounts": [
                {
                    "Type": m.type,
                    "Source": m.source,
                    "Destination": m.target,
                    "RW": not m.read_only,
                }
                for m in run_args.mounts
            ],
            "NetworkSettings": {
                "Ports": ports,
                "Networks": {run_args.network: self._endpoint()},
            },
        }
        return f"id-{run_args.name}"

    def _endpoint(self):
        endpoint = {
            "IPAddress": f"172.17.0.{self._next_ip}",
            "IPPrefixLen": 16,
            "Gateway": "172.17.0.1",
        }
        self._next_ip += 1
        return endpoint

    def _get(self, name):
        if name not in self.containers:
            raise RuntimeCommandError(f"No such container: {name}")
        return self.containers[name]

    def start(self, name):
        self.calls.append(("start", name))
        self._get(name)["State"]["Running"] = True

    def stop(self, name):
        self.calls.append(("stop", name))
        self._get(name)["State"]["Running"] = False

    def kill(self, name, signal="KILL"):
        self.calls.append(("kill", name, signal))
        self._get(name)["State"]["Running"] = False

    def remove(self, name, volumes=True):
        self.calls.append(("remove", name, volumes))
        self._get(name)
        del self.containers[name]

    def inspect_object(self, name):
        return copy.deepcopy(self._get(name))

    def pull_if_not_present(self, image, retries):
        self.calls.append(("pull_if_not_present", image, retries))
        if image in self.images:
            return False
        self.images.add(image)
        return True

    def connect_network(self, container, network, alias=None):
        self.calls.append(("connect_network", container, network, alias))
        self._get(container)["NetworkSettings"]["Networks"][network] = self._endpoint()

    def run_shell(self, name, script):
        self.calls.append(("run_shell", name, script))
        self._get(name)
        self.scripts.setdefault(name, []).append(script)
        return ""

    def copy_to(self, host_path, container, dest_path):
        self.calls.append(("copy_to", host_path, container, dest_path))

    def copy_from(self, container, src_path, host_path):
        self.calls.append(("copy_from", container, src_path, host_path))


@pytest.fixture
def cli_runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def driver():
    """Provide an empty in-memory runtime driver."""
    return FakeRuntimeDriver()


@pytest.fixture
def logger():
    """Provide a mock logger."""
    return Mock()


@pytest.fixture
def executor():
    """Provide a mock host command executor."""
    return Mock()


@pytest.fixture
def e2e_config():
    """Cluster `c` with one set of two replicas publishing 22 on 2222+i."""
    return Config.from_dict(copy.deepcopy(E2E_CONFIG))


@pytest.fixture
def make_config():
    """Build a Config from a dict, defaulting to the two replica cluster."""

    def _make(data=None):
        return Config.from_dict(copy.deepcopy(data or E2E_CONFIG))

    return _make
