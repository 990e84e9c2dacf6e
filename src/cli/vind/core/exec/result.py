"""CommandResult dataclass for command execution results."""

from dataclasses import dataclass


@dataclass
class CommandResult:
    """Command result.

    Attributes
    ----------
    command : list[str]
        The command that was executed.
    output : str
        The command output. Holds stdout and stderr combined unless the
        command was run with `combine_output=False`.
    exit_code : int
        The exit code returned by the command.
    duration : float
        Duration in seconds for the command execution.
    error : Optional[BaseException]
        Error if command failed, else None.
    """

    command: list[str]
    output: str
    exit_code: int
    duration: float
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        """Return True when the command exited with status 0."""
        return self.exit_code == 0
