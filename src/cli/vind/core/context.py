"""Core context and controls for the vind CLI."""

from __future__ import annotations

import logging
import os

from vind import settings
from vind.core.cluster.cluster import Cluster
from vind.core.config import Config
from vind.core.errors import VindError
from vind.core.exec.host import HostCommandExecutor
from vind.core.keystore import KeyStore
from vind.core.logging.levels import LogLevel
from vind.core.logging.logger import VindLogger
from vind.core.logging.utils import configure_logging
from vind.core.runtime.base import RuntimeDriver
from vind.core.runtime.docker_driver import DockerDriver


class VindContext:
    """Expose context and core controls to CLI scripts.

    Attributes
    ----------
    logger : VindLogger
        Logs CLI activity.
    cmd_executor : HostCommandExecutor
        Executes commands on the host.
    config_file : str
        Path of the cluster configuration file.
    key_store_dir : str
        Directory of the public key store.
    log_level : LogLevel
        Log level requested on the command line.

    Methods
    -------
    initialize()
        Hydrate the context with user-provided inputs.
    """

    logger: VindLogger
    cmd_executor: HostCommandExecutor | None
    config_file: str
    key_store_dir: str

    def __init__(self):
        # ------------------------------
        # ---- User-provided inputs ----
        self.user_config_file = ""
        self.log_level = LogLevel.INFO
        # ------------------------------

        self.logger = logging.getLogger("vind")  # type: ignore[assignment]
        self.cmd_executor = None
        self.config_file = ""
        self.key_store_dir = ""
        self._driver: RuntimeDriver | None = None
        self._initialized = False

    def initialize(self) -> None:
        """Initialize core CLI context attributes.

        Configures logging, the host command executor and the configuration
        and key store paths. The runtime driver is only created when a
        command first needs it.
        """
        if self._initialized:
            raise VindError("Context has already been initialized.")
        self.logger = configure_logging(self.log_level)
        if self.cmd_executor is None:
            self.cmd_executor = HostCommandExecutor(self.logger)
        self.config_file = self.resolve_config_file(self.user_config_file)
        self.key_store_dir = os.environ.get(
            settings.KEY_STORE_ENV_VAR, settings.DEFAULT_KEY_STORE_PATH
        )
        self._initialized = True

    def resolve_config_file(self, config_file: str = "") -> str:
        """Return the configuration file path.

        Notes
        -----
        The path is determined using the following order of precedence:

        1. The `--config` option.
        2. The `VIND_CONFIG` environment variable.
        3. `vind.yaml` in the working directory.
        """
        if config_file:
            self.logger.debug(f"Using config file from --config: {config_file}")
            return config_file
        env_file = os.environ.get(settings.CONFIG_ENV_VAR, "")
        if env_file:
            self.logger.debug(f"Using config file from {settings.CONFIG_ENV_VAR}: {env_file}")
            return env_file
        self.logger.debug(f"Using default config file: {settings.DEFAULT_CONFIG_FILE}")
        return settings.DEFAULT_CONFIG_FILE

    @property
    def driver(self) -> RuntimeDriver:
        """The container runtime driver."""
        if self._driver is None:
            assert self.cmd_executor is not None
            self._driver = DockerDriver.from_environment(self.cmd_executor, self.logger)
        return self._driver

    @driver.setter
    def driver(self, value: RuntimeDriver) -> None:
        self._driver = value

    def load_config(self) -> Config:
        """Read the configuration file."""
        return Config.from_file(self.config_file)

    def load_cluster(self) -> Cluster:
        """Build the cluster described by the configuration file.

        The key store is attached when its directory exists.
        """
        cluster = Cluster(
            self.load_config(),
            logger=self.logger,
            driver=self.driver,
            executor=self.cmd_executor,
        )
        if os.path.isdir(self.key_store_dir):
            self.logger.debug(f"Using key store at {self.key_store_dir}")
            cluster.set_key_store(KeyStore(self.key_store_dir))
        return cluster
