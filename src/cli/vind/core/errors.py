"""Error classes for the vind CLI."""


class VindError(Exception):
    """Base exception class for all vind-related errors.

    Parameters
    ----------
    msg : str, optional
        Message to log and include in the exception.

    Attributes
    ----------
    msg : str
        Error message associated with the exception.
    exit_code : int
        Exit code for the error type. Defaults to 1.
    """

    exit_code = 1

    def __init__(self, msg: str = "") -> None:
        super().__init__(msg)
        self.msg = msg

    def __str__(self) -> str:
        """Return the error message as a string."""
        return self.msg


class UserError(VindError):
    """User errors that vind can safely log and display.

    Parameters
    ----------
    msg : str, optional
        Message to log and include in the exception.
    hint_msg : str, optional
        Additional guidance for resolving the issue.

    Attributes
    ----------
    exit_code : int
        Exit code used to signal a user-handled error. Defaults to 2.
    """

    exit_code = 2

    def __init__(self, msg: str = "", hint_msg: str = "") -> None:
        if hint_msg:
            super().__init__(f"User error: {msg}\nHint: {hint_msg}")
        else:
            super().__init__(f"User error: {msg}")


class ConfigError(UserError):
    """Invalid cluster configuration or missing SSH key material."""


class DaemonUnreachableError(UserError):
    """The container runtime cannot be reached."""


class MachineNotFoundError(UserError):
    """A single-target operation named a machine that does not exist."""

    def __init__(self, machine_name: str) -> None:
        super().__init__(f"Machine name not found: {machine_name}")
        self.machine_name = machine_name


class KeyStoreError(VindError):
    """Key store lookups and writes."""


class RuntimeCommandError(VindError):
    """A runtime or host command failed.

    Parameters
    ----------
    msg : str
        Message to log and include in the exception.
    output : str, optional
        Combined stdout/stderr captured from the failed command.
    """

    def __init__(self, msg: str = "", output: str = "") -> None:
        super().__init__(msg)
        self.output = output


class SSHError(VindError):
    """The ssh client exited with a non-zero status."""

    def __init__(self, msg: str = "", exit_code: int = 1) -> None:
        super().__init__(msg)
        self.exit_code = exit_code
