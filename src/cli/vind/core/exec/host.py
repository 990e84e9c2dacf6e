"""Executes commands on the host via subprocess."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import threading
import time
from typing import IO, TYPE_CHECKING, Any

from vind.core.errors import RuntimeCommandError
from vind.core.exec.result import CommandResult

if TYPE_CHECKING:
    import logging


class HostCommandExecutor:
    """Executes commands on the host via subprocess."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def execute(
        self,
        command: list[str],
        **kwargs: Any,
    ) -> CommandResult:
        """
        Execute a command on the host via subprocess.

        Parameters
        ----------
        command : list[str]
            The command and its arguments.
        **kwargs : Any
            `environment` (dict) overrides environment variables.
            `trigger_error` (bool, default True) raises on a non-zero exit.
            `combine_output` (bool, default True) folds stderr into the
            captured output; when False stderr is captured separately and
            only logged.

        Returns
        -------
        CommandResult
            The result of the command.

        Raises
        ------
        RuntimeCommandError
            If the command exits non-zero (or cannot be started) and
            `trigger_error` is set.
        """
        self._logger.debug(f"Executing command on host:\n{command}")
        start_time = time.monotonic()
        env = self._handle_env(kwargs.get("environment"))
        output = ""
        rc = -1
        last_e: OSError | None = None
        try:
            combine = kwargs.get("combine_output", True)
            process = subprocess.Popen(
                command,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if combine else subprocess.PIPE,
                universal_newlines=True,
            )

            def kill_proc_on_signal(signum, frame):
                self._logger.warning(f"Killing subprocess on signal {signum}")
                process.terminate()

            old_sigint = signal.signal(signal.SIGINT, kill_proc_on_signal)
            try:
                output, errors = process.communicate()
                rc = process.returncode
            finally:
                signal.signal(signal.SIGINT, old_sigint)
            output = output or ""
            if output.strip():
                self._logger.debug(f"Command output:\n{output}")
            if errors and errors.strip():
                self._logger.debug(f"Command stderr:\n{errors}")
        except OSError as e:
            last_e = e
            output = str(e)
            rc = -1

        error: RuntimeCommandError | None = None
        if rc != 0:
            error = RuntimeCommandError(
                f"Failed to execute command on host:\n{' '.join(command)}\n"
                f"Exit code: {rc}\nCommand output: {output}",
                output,
            )
            if last_e is not None:
                error.__cause__ = last_e
        if kwargs.get("trigger_error", True) and error is not None:
            raise error

        return CommandResult(
            command,
            output=output,
            exit_code=rc,
            duration=time.monotonic() - start_time,
            error=error,
        )

    def execute_interactive(self, command: list[str], stderr_sink: IO[bytes]) -> int:
        """
        Run a command attached to the terminal, piping its stderr to a sink.

        stdin and stdout are inherited from the current process. stderr is
        read as raw bytes and written to `stderr_sink` one line at a time, so
        the caller can filter it.

        Parameters
        ----------
        command : list[str]
            The command and its arguments.
        stderr_sink : IO[bytes]
            Writable receiving the command's stderr.

        Returns
        -------
        int
            The exit code of the command.

        Raises
        ------
        RuntimeCommandError
            If the command cannot be started.
        """
        self._logger.debug(f"Executing interactive command on host:\n{command}")
        try:
            process = subprocess.Popen(
                command,
                stdin=sys.stdin,
                stdout=sys.stdout,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise RuntimeCommandError(
                f"Failed to start command on host: {' '.join(command)}: {e}"
            ) from e

        def pump() -> None:
            assert process.stderr is not None
            for line in iter(process.stderr.readline, b""):
                stderr_sink.write(line)
            process.stderr.close()

        reader = threading.Thread(target=pump, daemon=True)
        reader.start()
        rc = process.wait()
        reader.join()
        return rc

    def _handle_env(self, env_override: dict[str, Any] | None = None) -> dict[str, str]:
        """Return the current environment updated with `env_override`."""
        env = os.environ.copy()
        if env_override:
            env.update(env_override)
        return env
