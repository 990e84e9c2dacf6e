"""Settings and constants for the vind CLI."""

# Configuration
DEFAULT_CONFIG_FILE = "vind.yaml"
CONFIG_ENV_VAR = "VIND_CONFIG"
DEFAULT_KEY_STORE_PATH = "keys"
KEY_STORE_ENV_VAR = "VIND_KEY_STORE"
LOG_LEVEL_ENV_VAR = "LOG_LEVEL"

# Container labels
CREATOR_LABEL = "creator"
CREATOR = "vind"
CLUSTER_LABEL = "cluster"
INDEX_LABEL = "index"

# Machines
DEFAULT_USER = "root"
DEFAULT_CMD = ["/sbin/init"]
DEFAULT_NETWORK = "bridge"
HOST_MOUNT_POINT = "/host"
TMPFS_MOUNTS = {
    "/run": "",
    "/run/lock": "",
    "/tmp": "exec,mode=777",
}
IMAGE_PULL_RETRIES = 2

# SSH
SSH_PORT = 22
SSH_KEY_BITS = 4096
SSH_RETRIES = 25
SSH_RETRY_INTERVAL = 0.2
HOST_KEY_SCAN_DELAY = 0.5
KEY_PATH_ROOT = "/root/.ssh/authorized_keys"
KEY_PATH_NORMAL = "/home/{user}/.ssh/authorized_keys"

# fmt: off
INIT_SCRIPT = """
set -e
rm -f /run/nologin
u={user}
if [[ "$u" == "root" ]]; then
\tsshdir=/root/.ssh
\tmkdir -p $sshdir; chmod 700 $sshdir
\ttouch $sshdir/authorized_keys; chmod 600 $sshdir/authorized_keys
else
\tsshdir=/home/$u/.ssh
\tmkdir -p $sshdir; chmod 700 $sshdir
\ttouch $sshdir/authorized_keys; chmod 600 $sshdir/authorized_keys
\tchown -R $u:$u /home/$u/
fi
"""
# fmt: on

# Templates
DEFAULT_CONFIG = {
    "cluster": {
        "name": "cluster",
        "privateKey": "cluster-key",
    },
    "machineSets": [
        {
            "name": "test",
            "replicas": 1,
            "spec": {
                "name": "node%d",
                "image": "brightzheng100/vind-ubuntu:22.04",
                "portMappings": [{"containerPort": 22}],
                "backend": "docker",
            },
        }
    ],
}
