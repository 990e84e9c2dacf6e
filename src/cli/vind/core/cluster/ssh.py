"""SSH login into machines, retrying while sshd is still starting."""

from __future__ import annotations

import logging
import re
import sys
import time
from collections.abc import Callable
from typing import IO, TYPE_CHECKING, Optional

from vind import settings
from vind.core.errors import SSHError

if TYPE_CHECKING:
    from vind.core.exec.host import HostCommandExecutor

# ssh_exchange_identification: read: Connection reset by peer
CONNECT_REFUSED = re.compile(rb"^ssh_exchange_identification: ")

# Warning: Permanently added '172.17.0.2' (ECDSA) to the list of known hosts.
KNOWN_HOSTS = re.compile(rb"^Warning: Permanently added .* to the list of known hosts.")


class MatchFilter:
    """Writable that forwards to `writer` and records whether `pattern` matched.

    Each write is assumed to carry whole lines. Matching writes are dropped
    unless `write_matched` is set.

    Parameters
    ----------
    writer : IO[bytes]
        Downstream sink.
    pattern : re.Pattern[bytes]
        Pattern matched at the start of each write.
    write_matched : bool, optional
        Forward matching writes too.
    """

    def __init__(
        self, writer: IO[bytes], pattern: re.Pattern[bytes], write_matched: bool = False
    ) -> None:
        self.writer = writer
        self.pattern = pattern
        self.write_matched = write_matched
        self.matched = False

    def write(self, data: bytes) -> int:
        """Record a pattern match and forward `data` unless it is dropped."""
        if self.pattern.match(data):
            self.matched = True
            if not self.write_matched:
                return len(data)
        written = self.writer.write(data)
        self.flush()
        return written if written is not None else len(data)

    def flush(self) -> None:
        """Flush the downstream writer if it supports flushing."""
        flush = getattr(self.writer, "flush", None)
        if flush is not None:
            flush()


def build_ssh_args(
    key_path: str,
    host_port: int,
    user: str,
    remote: str = "localhost",
    extra_args: Optional[list[str]] = None,
    auto_cd: str = "",
) -> list[str]:
    """
    Build the `ssh` argument list for a machine login.

    Host keys are neither checked nor stored. `extra_args` is appended when
    given; otherwise a non-empty `auto_cd` makes the remote shell start in
    that directory.
    """
    args = [
        "-o", "UserKnownHostsFile=/dev/null",
        "-o", "StrictHostKeyChecking=no",
        "-o", "IdentitiesOnly=yes",
        "-i", key_path,
        "-p", str(host_port),
        "-l", user,
        "-t", remote,
    ]  # fmt: skip
    if extra_args:
        args.extend(extra_args)
    elif auto_cd:
        args.append(f"cd {auto_cd}; exec $SHELL -l")
    return args


class SSHConnector:
    """Run `ssh` interactively and retry while the remote sshd is not ready.

    Right after a container starts, sshd may reset connections with
    `ssh_exchange_identification`. Such failures are retried up to `retries`
    attempts, `interval` seconds apart. Any other failure is raised at once.

    Parameters
    ----------
    executor : HostCommandExecutor
        Runs `ssh`.
    logger : logging.Logger, optional
        Defaults to the `vind` logger.
    retries : int, optional
        Maximum number of attempts.
    interval : float, optional
        Seconds between attempts.
    sleep : Callable[[float], None], optional
        Sleep function.
    stderr : IO[bytes], optional
        Final sink for ssh's filtered stderr. Defaults to the current
        `sys.stderr` byte stream.
    """

    def __init__(
        self,
        executor: HostCommandExecutor,
        logger: Optional[logging.Logger] = None,
        retries: int = settings.SSH_RETRIES,
        interval: float = settings.SSH_RETRY_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        stderr: Optional[IO[bytes]] = None,
    ) -> None:
        self._executor = executor
        self._logger = logger or logging.getLogger("vind")
        self.retries = retries
        self.interval = interval
        self._sleep = sleep
        self._stderr = stderr

    def run_once(self, args: list[str]) -> tuple[bool, int]:
        """
        Invoke `ssh` once.

        Returns
        -------
        tuple[bool, int]
            Whether the invocation should be retried, and ssh's exit code.
        """
        sink = self._stderr if self._stderr is not None else sys.stderr.buffer
        refused_filter = MatchFilter(sink, CONNECT_REFUSED)
        err_filter = MatchFilter(refused_filter, KNOWN_HOSTS)
        self._logger.debug(f"ssh {' '.join(args)}")
        rc = self._executor.execute_interactive(["ssh", *args], err_filter)
        return rc != 0 and refused_filter.matched, rc

    def connect(self, args: list[str]) -> None:
        """
        Log in with `ssh args...`, retrying refused connections.

        Raises
        ------
        SSHError
            If the last attempt exits non-zero.
        """
        rc = 0
        for attempt in range(1, self.retries + 1):
            retry, rc = self.run_once(args)
            if not retry:
                break
            self._logger.debug(
                f"sshd not ready yet, retrying ({attempt}/{self.retries})..."
            )
            if attempt < self.retries:
                self._sleep(self.interval)
        if rc != 0:
            raise SSHError(f"ssh exited with status {rc}", rc)
