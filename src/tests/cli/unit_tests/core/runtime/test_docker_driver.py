"""Unit tests for the Docker runtime driver.

The Docker SDK client is replaced by a mock.
"""

from unittest.mock import MagicMock, Mock

import pytest
from docker.errors import APIError, DockerException, ImageNotFound

from vind.core.errors import DaemonUnreachableError, RuntimeCommandError
from vind.core.runtime.base import ContainerRunArgs, PortPublish, VolumeMount
from vind.core.runtime.docker_driver import DockerDriver


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def docker_driver(client, executor):
    return DockerDriver(client, executor, Mock(), sleep=Mock())


class TestDockerDriverDaemon:
    """Test suite for daemon checks."""

    def test_no_client(self, executor):
        """Test a driver without a client reports the daemon unreachable."""
        driver = DockerDriver(None, executor, Mock())

        with pytest.raises(DaemonUnreachableError):
            driver.check_daemon()
        with pytest.raises(DaemonUnreachableError):
            driver.start("c-set-node0")

    def test_ping_failure(self, docker_driver, client):
        """Test ping failures are wrapped."""
        client.ping.side_effect = DockerException("connection refused")

        with pytest.raises(DaemonUnreachableError, match="connection refused"):
            docker_driver.check_daemon()

    def test_from_environment_defers_failures(self, executor):
        """Test an unresolvable socket yields a disconnected driver."""
        executor.execute.side_effect = RuntimeCommandError("docker: not found")

        driver = DockerDriver.from_environment(executor, Mock(), env={})

        with pytest.raises(DaemonUnreachableError):
            driver.check_daemon()


class TestDockerDriverContainers:
    """Test suite for container calls."""

    def test_create(self, docker_driver, client):
        """Test create passes bindings, mounts and network settings."""
        api = client.api
        api.create_container.return_value = {"Id": "abc"}
        run_args = ContainerRunArgs(
            name="c-set-node1",
            hostname="set-node1",
            labels={"cluster": "c"},
            tmpfs={"/run": ""},
            mounts=[VolumeMount("bind", "/", "/host", True)],
            publish=[
                PortPublish(22, 2223),
                PortPublish(53, 0, "udp", "127.0.0.1"),
                PortPublish(80),
            ],
            privileged=True,
            network="net0",
            network_aliases=["set-node1"],
        )

        assert docker_driver.create("img", run_args, ["/sbin/init"]) == "abc"

        host_config = api.create_host_config.call_args.kwargs
        assert host_config["port_bindings"] == {
            "22/tcp": [2223],
            "53/udp": [("127.0.0.1",)],
            "80/tcp": [None],
        }
        assert host_config["privileged"] is True
        assert host_config["network_mode"] == "net0"
        assert host_config["mounts"][0]["Target"] == "/host"
        assert host_config["mounts"][0]["ReadOnly"] is True
        api.create_endpoint_config.assert_called_once_with(aliases=["set-node1"])
        kwargs = api.create_container.call_args.kwargs
        assert kwargs["name"] == "c-set-node1"
        assert kwargs["hostname"] == "set-node1"
        assert kwargs["command"] == ["/sbin/init"]
        assert kwargs["ports"] == [22, (53, "udp"), 80]

    def test_create_conflict(self, docker_driver, client):
        """Test API errors become RuntimeCommandError."""
        client.api.create_container.side_effect = APIError("Conflict")

        with pytest.raises(RuntimeCommandError, match="Failed to create container"):
            docker_driver.create("img", ContainerRunArgs("n", "h"), [])

    def test_lifecycle_calls(self, docker_driver, client):
        """Test lifecycle calls reach the low-level API."""
        docker_driver.start("n")
        docker_driver.stop("n")
        docker_driver.kill("n")
        docker_driver.remove("n")

        client.api.start.assert_called_once_with("n")
        client.api.stop.assert_called_once_with("n")
        client.api.kill.assert_called_once_with("n", signal="KILL")
        client.api.remove_container.assert_called_once_with("n", v=True)

    def test_inspect(self, docker_driver, client):
        """Test field paths are resolved in the inspection document."""
        client.api.inspect_container.return_value = {
            "Name": "/n",
            "State": {"Running": True},
            "NetworkSettings": {"Ports": {"22/tcp": [{"HostIp": "0.0.0.0", "HostPort": "2222"}]}},
        }

        assert docker_driver.inspect("n", "State.Running") == ["true"]
        assert docker_driver.inspect("n", "NetworkSettings.Ports.22/tcp.0.HostPort") == ["2222"]
        assert docker_driver.inspect("n", "NetworkSettings.Ports.80/tcp.0.HostPort") == [
            "<no value>"
        ]

    def test_inspect_missing(self, docker_driver, client):
        """Test a missing container raises RuntimeCommandError."""
        client.api.inspect_container.side_effect = APIError("No such container: n")

        with pytest.raises(RuntimeCommandError):
            docker_driver.inspect("n", "Name")

    def test_connect_network(self, docker_driver, client):
        """Test aliases are only sent when given."""
        docker_driver.connect_network("n", "net1", "set-node0")
        docker_driver.connect_network("n", "bridge")

        calls = client.api.connect_container_to_network.call_args_list
        assert calls[0].kwargs["aliases"] == ["set-node0"]
        assert calls[1].kwargs["aliases"] is None

    def test_run_shell(self, docker_driver, client):
        """Test scripts run through bash."""
        container = client.containers.get.return_value
        container.exec_run.return_value = (0, b"ok\n")

        assert docker_driver.run_shell("n", "echo ok") == "ok\n"
        container.exec_run.assert_called_once_with(["/bin/bash", "-c", "echo ok"])

    def test_run_shell_failure(self, docker_driver, client):
        """Test a non-zero exit raises with the output."""
        client.containers.get.return_value.exec_run.return_value = (1, b"boom")

        with pytest.raises(RuntimeCommandError) as exc_info:
            docker_driver.run_shell("n", "false")

        assert exc_info.value.output == "boom"

    def test_copy(self, docker_driver, executor):
        """Test copies go through docker cp."""
        docker_driver.copy_to("a.txt", "n", "/tmp/a.txt")
        docker_driver.copy_from("n", "/etc/hosts", ".")

        assert executor.execute.call_args_list[0].args[0] == ["docker", "cp", "a.txt", "n:/tmp/a.txt"]
        assert executor.execute.call_args_list[1].args[0] == ["docker", "cp", "n:/etc/hosts", "."]


class TestDockerDriverImages:
    """Test suite for image pulls."""

    def test_present(self, docker_driver, client):
        """Test present images are not pulled."""
        assert docker_driver.pull_if_not_present("img", 2) is False
        client.images.pull.assert_not_called()

    def test_pull(self, docker_driver, client):
        """Test missing images are pulled."""
        client.images.get.side_effect = ImageNotFound("img")

        assert docker_driver.pull_if_not_present("img", 2) is True
        client.images.pull.assert_called_once_with("img")

    def test_pull_retries(self, docker_driver, client):
        """Test failed pulls are retried with a growing pause."""
        client.images.get.side_effect = ImageNotFound("img")
        client.images.pull.side_effect = [APIError("timeout"), None]

        assert docker_driver.pull_if_not_present("img", 2) is True
        docker_driver._sleep.assert_called_once_with(1)

    def test_pull_gives_up(self, docker_driver, client):
        """Test the last failure is raised."""
        client.images.get.side_effect = ImageNotFound("img")
        client.images.pull.side_effect = APIError("timeout")

        with pytest.raises(RuntimeCommandError, match="Failed to pull image img"):
            docker_driver.pull_if_not_present("img", 2)

        assert client.images.pull.call_count == 2
