"""
Resolve the Docker socket to use.

For internal and external use (e.g. CLI and tests).
"""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, Mapping, Optional

from vind.core.errors import DaemonUnreachableError, RuntimeCommandError

if TYPE_CHECKING:
    from vind.core.exec.host import HostCommandExecutor


def resolve_docker_socket(
    executor: HostCommandExecutor, env: Optional[Mapping[str, str]] = None
) -> str:
    """
    Return the Docker socket to use, preferring DOCKER_HOST if set.

    Parameters
    ----------
    executor : HostCommandExecutor
        Executor used to run `docker context inspect`.
    env : Mapping[str, str], optional
        Environment variables used when resolving the Docker socket.
        Defaults to `os.environ`.

    Returns
    -------
    str
        The Docker socket to use.

    Raises
    ------
    DaemonUnreachableError
        If the Docker socket cannot be determined.
    """
    if env is None:
        env = os.environ
    socket_path = env.get("DOCKER_HOST")
    if socket_path:
        return socket_path
    try:
        result = executor.execute(
            ["docker", "context", "inspect"],
            environment=dict(env),
            combine_output=False,
        )
        context = json.loads(result.output)[0]
        return context["Endpoints"]["docker"].get("Host", "")
    except (RuntimeCommandError, ValueError, KeyError, IndexError) as e:
        raise DaemonUnreachableError(
            "Failed to determine the Docker socket.",
            "Is Docker installed? Set DOCKER_HOST to point at the daemon.",
        ) from e
