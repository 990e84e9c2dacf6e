"""Unit tests for Cluster.

Covers enumeration, lifecycle sweeps, show, ssh and key handling.
"""

from unittest.mock import Mock

import pytest

from vind import settings
from vind.core.cluster.cluster import Cluster
from vind.core.config import Config
from vind.core.errors import (
    ConfigError,
    DaemonUnreachableError,
    KeyStoreError,
    MachineNotFoundError,
    RuntimeCommandError,
    UserError,
)
from vind.core.keystore import KeyStore


@pytest.fixture
def key_pair(tmp_path):
    """Write a cluster key pair and return the private key path."""
    private_key = tmp_path / "cluster-key"
    private_key.write_text("PRIVATE")
    (tmp_path / "cluster-key.pub").write_bytes(b"ssh-rsa CLUSTER c@vind.mail\n")
    return str(private_key)


@pytest.fixture
def cluster(e2e_config, driver, logger, executor, key_pair):
    """Two replica cluster with a cluster key pair."""
    e2e_config.cluster.private_key = key_pair
    return Cluster(e2e_config, logger=logger, driver=driver, executor=executor)


class TestClusterInit:
    """Test suite for building clusters."""

    def test_config_is_copied(self, e2e_config, driver, logger, executor):
        """Test later edits to the source config do not leak in."""
        cluster = Cluster(e2e_config, logger=logger, driver=driver, executor=executor)
        e2e_config.machine_sets[0].replicas = 5

        assert len(list(cluster.machines())) == 2

    def test_invalid_config(self, e2e_config, driver, logger, executor):
        """Test an invalid config is rejected up front."""
        e2e_config.machine_sets[0].spec.name = "node"

        with pytest.raises(ConfigError):
            Cluster(e2e_config, logger=logger, driver=driver, executor=executor)

    def test_from_yaml(self, driver, logger, executor):
        """Test a cluster builds from YAML text."""
        cluster = Cluster.from_yaml(
            "cluster:\n  name: yaml\nmachineSets:\n- name: s\n  replicas: 1\n",
            logger=logger,
            driver=driver,
            executor=executor,
        )

        assert cluster.name == "yaml"
        assert [m.container_name for m in cluster.machines()] == ["yaml-s-node0"]

    def test_save(self, cluster, tmp_path):
        """Test the configuration is written back."""
        path = tmp_path / "out.yaml"

        cluster.save(str(path))

        assert Config.from_file(str(path)) == cluster.config


class TestClusterEnumeration:
    """Test suite for machine enumeration."""

    def test_machines(self, cluster):
        """Test machines are yielded in set and replica order."""
        names = [m.container_name for m in cluster.machines()]

        assert names == ["c-set-node0", "c-set-node1"]

    def test_creation_args_offset_ports(self, cluster):
        """Test each replica publishes the base host port plus its index."""
        published = [
            [(p.host_port, p.container_port) for p in m.container_run_args().publish]
            for m in cluster.machines()
        ]

        assert published == [[(2222, 22)], [(2223, 22)]]

    def test_zero_replicas(self, make_config, driver, logger, executor):
        """Test a set with no replicas yields no machines."""
        config = make_config()
        config.machine_sets[0].replicas = 0
        cluster = Cluster(config, logger=logger, driver=driver, executor=executor)

        assert list(cluster.machines()) == []

    def test_machine_by_name(self, cluster):
        """Test single-target lookup by machine name."""
        assert cluster.machine_by_name("set-node1").index == 1
        with pytest.raises(MachineNotFoundError, match="Machine name not found: set-node9"):
            cluster.machine_by_name("set-node9")

    def test_first_machine(self, cluster):
        """Test the first machine is replica 0 of the first set."""
        assert cluster.first_machine().machine_name == "set-node0"

    def test_first_machine_without_sets(self, driver, logger, executor):
        """Test an empty cluster has no first machine."""
        cluster = Cluster(Config(), logger=logger, driver=driver, executor=executor)

        with pytest.raises(UserError):
            cluster.first_machine()


class TestClusterLifecycle:
    """Test suite for create, start, stop and delete sweeps."""

    def test_create(self, cluster, driver, executor):
        """Test create pulls the image and provisions every replica."""
        cluster.create()

        assert driver.calls_to("pull_if_not_present") == [
            ("pull_if_not_present", "img", settings.IMAGE_PULL_RETRIES)
        ]
        assert sorted(driver.containers) == ["c-set-node0", "c-set-node1"]
        assert cluster.machine_by_name("set-node0").host_port(22) == 2222
        assert cluster.machine_by_name("set-node1").host_port(22) == 2223
        assert "ssh-rsa CLUSTER" in driver.scripts["c-set-node1"][1]
        executor.execute.assert_not_called()

    def test_create_twice(self, cluster, driver):
        """Test a second create leaves existing machines alone."""
        cluster.create()
        cluster.create()

        assert len(driver.calls_to("create")) == 2

    def test_create_daemon_down(self, cluster, driver):
        """Test nothing is created when the daemon is unreachable."""
        driver.daemon_up = False

        with pytest.raises(DaemonUnreachableError):
            cluster.create()

        assert not driver.calls_to("create")

    @pytest.mark.parametrize("operation", ["delete", "start", "stop", "show"])
    def test_daemon_down_touches_nothing(self, cluster, driver, operation):
        """Test every sweep checks the daemon before touching a machine."""
        driver.daemon_up = False

        with pytest.raises(DaemonUnreachableError):
            getattr(cluster, operation)()

        assert driver.calls == [("check_daemon",)]

    def test_create_stops_at_first_failure(self, cluster, driver):
        """Test a failing machine aborts the rest of the create sweep."""

        def run_shell(name, script):
            if name == "c-set-node0":
                raise RuntimeCommandError("exec failed")
            return ""

        driver.run_shell = run_shell

        with pytest.raises(RuntimeCommandError, match="exec failed"):
            cluster.create()

        assert "c-set-node0" in driver.containers
        assert "c-set-node1" not in driver.containers
        assert [c[2].name for c in driver.calls_to("create")] == ["c-set-node0"]

    def test_create_generates_key(self, e2e_config, driver, logger, executor, tmp_path):
        """Test a missing private key is generated with ssh-keygen."""
        private_key = tmp_path / "new-key"
        e2e_config.cluster.private_key = str(private_key)
        (tmp_path / "new-key.pub").write_bytes(b"ssh-rsa NEW\n")
        cluster = Cluster(e2e_config, logger=logger, driver=driver, executor=executor)

        cluster.create()

        command = executor.execute.call_args[0][0]
        assert command[0] == "ssh-keygen"
        assert command[command.index("-f") + 1] == str(private_key)
        assert command[command.index("-C") + 1] == "c@vind.mail"

    def test_create_without_key(self, e2e_config, driver, logger, executor):
        """Test create fails when no key source is configured."""
        cluster = Cluster(e2e_config, logger=logger, driver=driver, executor=executor)

        with pytest.raises(ConfigError, match="No SSH key provided"):
            cluster.create()

    def test_stop_all(self, cluster, driver):
        """Test stop without names sweeps every machine."""
        cluster.create()

        cluster.stop()

        assert [c[1] for c in driver.calls_to("stop")] == ["c-set-node0", "c-set-node1"]

    def test_named_subset(self, cluster, driver, logger):
        """Test unknown names are warned about and known ones handled."""
        cluster.create()
        cluster.stop()

        cluster.start(["set-node0", "set-nodeX"])

        assert [c[1] for c in driver.calls_to("start")][-1:] == ["c-set-node0"]
        assert len(driver.calls_to("start")) == 3
        logger.warning.assert_called_once_with("Machine set-nodeX does not exist")

    def test_delete(self, cluster, driver):
        """Test delete removes every machine."""
        cluster.create()

        cluster.delete()

        assert driver.containers == {}

    def test_delete_empty(self, cluster, driver):
        """Test deleting a cluster that was never created is a no-op."""
        cluster.delete()

        assert not driver.calls_to("remove")


class TestClusterShow:
    """Test suite for Cluster.show."""

    def test_show_overlays_runtime_values(self, cluster, driver):
        """Test shown machines carry live ports, mounts and command."""
        cluster.create()
        driver.containers["c-set-node0"]["Mounts"] = [
            {"Type": "bind", "Source": "/", "Destination": "/host", "RW": False}
        ]

        machines = cluster.show()

        assert [m.machine_name for m in machines] == ["set-node0", "set-node1"]
        spec = machines[0].spec
        assert spec.port_mappings[0].container_port == 22
        assert spec.port_mappings[0].host_port == 2222
        assert spec.volumes[0].read_only is True
        assert spec.cmd == "/sbin/init"
        assert machines[0].runtime_networks[0].ip == "172.17.0.2"
        assert cluster.config.machine_sets[0].spec.volumes == []

    def test_show_skips_missing(self, cluster, driver, logger):
        """Test machines that were never created are warned about."""
        cluster.machine_by_name("set-node1").create(b"ssh-rsa KEY")

        machines = cluster.show()

        assert [m.machine_name for m in machines] == ["set-node1"]
        logger.warning.assert_called_once_with("Machine not created: set-node0")

    def test_show_named(self, cluster):
        """Test show can be limited to named machines."""
        cluster.create()

        assert [m.machine_name for m in cluster.show(["set-node1"])] == ["set-node1"]


class TestClusterSSH:
    """Test suite for Cluster.ssh."""

    def test_ssh(self, cluster, key_pair):
        """Test ssh logs in on the machine's published port."""
        connector = Mock()
        cluster._ssh = connector
        cluster.create()
        machine = cluster.machine_by_name("set-node1")

        cluster.ssh(machine, "root")

        args = connector.connect.call_args[0][0]
        assert args[args.index("-p") + 1] == "2223"
        assert args[args.index("-i") + 1] == key_pair
        assert args[args.index("-l") + 1] == "root"
        assert args[-1] == "localhost"

    def test_ssh_extra_args(self, cluster):
        """Test extra arguments are passed through."""
        connector = Mock()
        cluster._ssh = connector
        cluster.create()

        cluster.ssh(cluster.first_machine(), "root", ["uname", "-a"])

        assert connector.connect.call_args[0][0][-2:] == ["uname", "-a"]

    def test_ssh_requires_private_key(self, e2e_config, driver, logger, executor):
        """Test ssh without a cluster private key is a config error."""
        cluster = Cluster(e2e_config, logger=logger, driver=driver, executor=executor)

        with pytest.raises(ConfigError):
            cluster.ssh(cluster.first_machine(), "root")


class TestClusterKeys:
    """Test suite for public key resolution."""

    def test_public_key_from_pair(self, cluster):
        """Test the cluster public key is read next to the private key."""
        spec = cluster.config.machine_sets[0].spec

        assert cluster.public_key(spec) == b"ssh-rsa CLUSTER c@vind.mail\n"

    def test_public_key_from_store(self, cluster, tmp_path):
        """Test a named stored key wins over the cluster key."""
        store = KeyStore(str(tmp_path / "keys")).init()
        store.store("alice", "ssh-rsa ALICE")
        cluster.set_key_store(store)
        spec = cluster.config.machine_sets[0].spec
        spec.public_key = "alice"

        assert cluster.public_key(spec) == b"ssh-rsa ALICE\n"

    def test_public_key_unknown_in_store(self, cluster, tmp_path):
        """Test an unknown stored key is an error."""
        cluster.set_key_store(KeyStore(str(tmp_path / "keys")).init())
        spec = cluster.config.machine_sets[0].spec
        spec.public_key = "bob"

        with pytest.raises(KeyStoreError):
            cluster.public_key(spec)

    def test_public_key_unreadable(self, e2e_config, driver, logger, executor, tmp_path):
        """Test a missing .pub file is a config error."""
        e2e_config.cluster.private_key = str(tmp_path / "missing")
        cluster = Cluster(e2e_config, logger=logger, driver=driver, executor=executor)

        with pytest.raises(ConfigError, match="Can't read public key"):
            cluster.public_key(cluster.config.machine_sets[0].spec)

    def test_existing_key_is_not_regenerated(self, cluster, executor):
        """Test ssh-keygen is skipped when the private key exists."""
        cluster.ensure_ssh_key()

        executor.execute.assert_not_called()


class TestClusterCopy:
    """Test suite for file copies."""

    def test_copy(self, cluster, driver):
        """Test copies address the machine's container."""
        machine = cluster.first_machine()

        cluster.copy_to("a.txt", machine, "/tmp/a.txt")
        cluster.copy_from(machine, "/etc/hosts", "hosts")

        assert driver.calls_to("copy_to") == [
            ("copy_to", "a.txt", "c-set-node0", "/tmp/a.txt")
        ]
        assert driver.calls_to("copy_from") == [
            ("copy_from", "c-set-node0", "/etc/hosts", "hosts")
        ]
