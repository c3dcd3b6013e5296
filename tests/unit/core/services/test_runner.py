from __future__ import annotations

"""
Unit tests for the subprocess-backed playbook runner.

subprocess.run is mocked; no external command is executed.
"""

import subprocess
from unittest.mock import MagicMock, patch

from tychonet.core.services.runner import SubprocessRunner


@patch("tychonet.core.services.runner.subprocess.run")
def test_run_captures_output_and_merges_env(mock_run, monkeypatch) -> None:
    """TC-01: Output is captured and extra variables extend the environment."""
    monkeypatch.setenv("HOME", "/home/ops")
    mock_run.return_value = MagicMock(returncode=0, stdout="PLAY RECAP", stderr="")

    result = SubprocessRunner().run(["ansible-playbook", "x.yml"], env={"ANSIBLE_CONFIG": "a.cfg"})

    assert result.ok
    assert result.stdout == "PLAY RECAP"
    kwargs = mock_run.call_args.kwargs
    assert kwargs["env"]["ANSIBLE_CONFIG"] == "a.cfg"
    assert kwargs["env"]["HOME"] == "/home/ops"
    assert kwargs["capture_output"] is True
    assert kwargs["check"] is False


@patch("tychonet.core.services.runner.subprocess.run")
def test_non_zero_exit(mock_run) -> None:
    """TC-02: Failures are returned, not raised; stdout wins as output."""
    mock_run.return_value = MagicMock(returncode=2, stdout="fatal: task failed", stderr="warn")

    result = SubprocessRunner().run(["ansible-playbook"])

    assert not result.ok
    assert result.output == "fatal: task failed"


@patch("tychonet.core.services.runner.subprocess.run", side_effect=FileNotFoundError())
def test_missing_binary(mock_run) -> None:
    """TC-03: A missing executable reports exit code 127."""
    result = SubprocessRunner().run(["ansible-playbook"])

    assert result.returncode == 127
    assert "command not found" in result.output


@patch("tychonet.core.services.runner.subprocess.run")
def test_timeout(mock_run) -> None:
    """TC-04: A timeout reports exit code 124 with the partial output."""
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="x", timeout=5, output="partial")

    result = SubprocessRunner(timeout=5).run(["ansible-playbook"])

    assert result.returncode == 124
    assert result.stdout == "partial"
    assert mock_run.call_args.kwargs["timeout"] == 5


@patch("tychonet.core.services.runner.subprocess.run", side_effect=PermissionError("denied"))
def test_os_error(mock_run) -> None:
    result = SubprocessRunner().run(["ansible-playbook"])

    assert result.returncode == 1
    assert "denied" in result.stderr
