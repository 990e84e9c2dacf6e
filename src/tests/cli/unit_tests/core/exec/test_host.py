"""Unit tests for host command execution.

Tests the HostCommandExecutor class for executing commands on the host system.
"""

import io
import subprocess
from unittest.mock import MagicMock, Mock, patch

import pytest

from vind.core.errors import RuntimeCommandError
from vind.core.exec.host import HostCommandExecutor
from vind.core.exec.result import CommandResult


def popen(output="", errors=None, returncode=0):
    process = MagicMock()
    process.communicate.return_value = (output, errors)
    process.returncode = returncode
    return process


class TestHostCommandExecutor:
    """Test suite for HostCommandExecutor."""

    @patch("subprocess.Popen")
    def test_execute_simple_command(self, mock_popen):
        """Test executing a simple command."""
        mock_popen.return_value = popen("Hello, World!\n")

        result = HostCommandExecutor(Mock()).execute(["echo", "Hello, World!"])

        assert isinstance(result, CommandResult)
        assert result.ok
        assert result.output == "Hello, World!\n"
        assert result.error is None
        assert mock_popen.call_args.kwargs["stderr"] == subprocess.STDOUT

    @patch("subprocess.Popen")
    def test_execute_separate_stderr(self, mock_popen):
        """Test stderr is kept out of the output when not combined."""
        mock_popen.return_value = popen('[{"Name": "default"}]', "warning")

        result = HostCommandExecutor(Mock()).execute(
            ["docker", "context", "inspect"], combine_output=False
        )

        assert result.output == '[{"Name": "default"}]'
        assert mock_popen.call_args.kwargs["stderr"] == subprocess.PIPE

    @patch("subprocess.Popen")
    def test_execute_command_with_error(self, mock_popen):
        """Test a non-zero exit raises with the output attached."""
        mock_popen.return_value = popen("No such file", returncode=1)

        with pytest.raises(RuntimeCommandError) as exc_info:
            HostCommandExecutor(Mock()).execute(["ls", "/nope"])

        assert "Exit code: 1" in exc_info.value.msg
        assert exc_info.value.output == "No such file"

    @patch("subprocess.Popen")
    def test_execute_without_trigger_error(self, mock_popen):
        """Test failures can be returned instead of raised."""
        mock_popen.return_value = popen("boom", returncode=3)

        result = HostCommandExecutor(Mock()).execute(["false"], trigger_error=False)

        assert result.exit_code == 3
        assert not result.ok
        assert isinstance(result.error, RuntimeCommandError)

    @patch("subprocess.Popen", side_effect=FileNotFoundError("ssh-keygen"))
    def test_execute_missing_binary(self, mock_popen):
        """Test a command that cannot start is reported as a failure."""
        with pytest.raises(RuntimeCommandError) as exc_info:
            HostCommandExecutor(Mock()).execute(["ssh-keygen"])

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    @patch("subprocess.Popen")
    def test_execute_with_environment(self, mock_popen):
        """Test environment overrides are merged into the current one."""
        mock_popen.return_value = popen()

        HostCommandExecutor(Mock()).execute(["env"], environment={"VIND_TEST": "1"})

        env = mock_popen.call_args.kwargs["env"]
        assert env["VIND_TEST"] == "1"
        assert "PATH" in env

    @patch("subprocess.Popen")
    def test_execute_interactive_pipes_stderr(self, mock_popen):
        """Test stderr lines are handed to the sink."""
        process = MagicMock()
        process.stderr = io.BytesIO(b"line one\nline two\n")
        process.wait.return_value = 255
        mock_popen.return_value = process
        sink = Mock()

        rc = HostCommandExecutor(Mock()).execute_interactive(["ssh", "host"], sink)

        assert rc == 255
        assert [c.args[0] for c in sink.write.call_args_list] == [b"line one\n", b"line two\n"]
        assert mock_popen.call_args.kwargs["stderr"] == subprocess.PIPE

    @patch("subprocess.Popen", side_effect=OSError("no ssh"))
    def test_execute_interactive_cannot_start(self, mock_popen):
        """Test a missing binary raises RuntimeCommandError."""
        with pytest.raises(RuntimeCommandError, match="Failed to start command"):
            HostCommandExecutor(Mock()).execute_interactive(["ssh"], Mock())
