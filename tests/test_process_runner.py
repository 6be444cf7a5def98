"""Tests for launching external programs and classifying their exit codes."""

from __future__ import annotations

import io
import logging
import os
import signal
import subprocess
import sys
import time
from pathlib import Path
from typing import Any

import pytest

from sfinstaller.constants import ProcessOutcome
from sfinstaller.domain.models import ProcessInvocation
from sfinstaller.errors import ProcessExitError, ProcessLaunchError, ProcessTimeoutError
from sfinstaller.runner import process


class FakeProcess:
    """``Popen`` double acting as both factory and process handle."""

    def __init__(self, exit_code: int = 0, stdout: str = "", stderr: str = "", hang: bool = False) -> None:
        """Script the process output and exit behaviour."""
        self.exit_code = exit_code
        self._stdout = stdout
        self._stderr = stderr
        self.hang = hang
        self.killed = False
        self.command: Any = None
        self.kwargs: dict[str, Any] = {}

    def __call__(self, command: Any, **kwargs: Any) -> "FakeProcess":
        """Record launch arguments and expose fresh output streams."""
        self.command = command
        self.kwargs = kwargs
        self.stdout = io.StringIO(self._stdout)
        self.stderr = io.StringIO(self._stderr)
        return self

    def wait(self, timeout: float | None = None) -> int:
        """Return the exit code, or time out until killed when hanging."""
        if self.hang and not self.killed:
            raise subprocess.TimeoutExpired("fake", timeout)
        return self.exit_code

    def kill(self) -> None:
        """Mark the process as killed."""
        self.killed = True


def python_invocation(code: str, acceptable: frozenset[int] = frozenset()) -> ProcessInvocation:
    """Build an invocation running ``code`` in a fresh interpreter."""
    return ProcessInvocation(sys.executable, f'-c "{code}"', acceptable_exit_codes=acceptable)


@pytest.mark.parametrize(
    ("exit_code", "acceptable", "expected"),
    [
        (0, frozenset(), ProcessOutcome.SUCCESS),
        (3010, frozenset(), ProcessOutcome.REBOOT_REQUIRED),
        (3010, frozenset({3010}), ProcessOutcome.REBOOT_REQUIRED),
        (1, frozenset({1}), ProcessOutcome.RECOGNIZED_ALTERNATE_SUCCESS),
        (1, frozenset(), ProcessOutcome.FAILURE),
        (1603, frozenset({1}), ProcessOutcome.FAILURE),
        (-1, frozenset(), ProcessOutcome.FAILURE),
    ],
)
def test_classify_exit_code_priority(
    exit_code: int, acceptable: frozenset[int], expected: ProcessOutcome
) -> None:
    """Verify reboot, recognized, failure and success classification order."""
    assert process.classify_exit_code(exit_code, acceptable) is expected


def test_invocation_requires_executable() -> None:
    """Verify an empty executable path fails fast."""
    with pytest.raises(ValueError, match="FileName must be provided"):
        ProcessInvocation("")


def test_build_command_splits_arguments_on_posix(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify non-Windows commands become argument lists."""
    monkeypatch.setattr(process, "is_windows", lambda: False)

    command = process.build_command(ProcessInvocation("/usr/bin/tool", '--path "a b" -q'))

    assert command == ["/usr/bin/tool", "--path", "a b", "-q"]


def test_build_command_keeps_raw_command_line_on_windows(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify Windows commands keep installer switches untouched."""
    monkeypatch.setattr(process, "is_windows", lambda: True)

    command = process.build_command(
        ProcessInvocation(r"C:\Program Files\WebpiCmd.exe", "/Install /Products:X /AcceptEULA")
    )

    assert command == r'"C:\Program Files\WebpiCmd.exe" /Install /Products:X /AcceptEULA'
    assert process.build_command(ProcessInvocation(r"C:\a.exe")) == r'"C:\a.exe"'


def test_run_launches_without_shell_in_working_dir(tmp_path: Path) -> None:
    """Verify launch options and handle release on success."""
    fake = FakeProcess(exit_code=0)
    runner = process.ProcessRunner(working_dir=tmp_path, popen=fake)

    result = runner.run(ProcessInvocation("tool", "--flag"))

    assert result.outcome is ProcessOutcome.SUCCESS
    assert result.succeeded is True
    assert fake.kwargs["cwd"] == str(tmp_path)
    assert fake.kwargs["shell"] is False
    assert fake.kwargs["stdout"] is subprocess.PIPE
    assert fake.kwargs["stderr"] is subprocess.PIPE
    assert fake.stdout.closed and fake.stderr.closed


def test_run_treats_reboot_required_as_success(caplog: pytest.LogCaptureFixture) -> None:
    """Verify exit code 3010 logs an advisory and does not fail."""
    caplog.set_level(logging.INFO, logger="sfinstaller")
    runner = process.ProcessRunner(popen=FakeProcess(exit_code=3010))

    result = runner.run(ProcessInvocation("msiexec.exe", "/i x.msi"))

    assert result.outcome is ProcessOutcome.REBOOT_REQUIRED
    assert result.reboot_required is True
    assert result.effective_exit_code == 3010
    assert any("requires a reboot" in record.message for record in caplog.records)


def test_run_resets_recognized_exit_code() -> None:
    """Verify acceptable non-zero codes succeed and read as exit code 0."""
    runner = process.ProcessRunner(popen=FakeProcess(exit_code=1))

    result = runner.run(ProcessInvocation("vs_installer.exe", "modify", frozenset({1})))

    assert result.outcome is ProcessOutcome.RECOGNIZED_ALTERNATE_SUCCESS
    assert result.exit_code == 1
    assert result.effective_exit_code == 0


def test_run_raises_on_unrecognized_exit_code_and_releases_handle() -> None:
    """Verify failing exit codes raise with the executable name and code embedded."""
    fake = FakeProcess(exit_code=1603)
    runner = process.ProcessRunner(popen=fake)

    with pytest.raises(ProcessExitError) as excinfo:
        runner.run(ProcessInvocation(r"C:\Windows\System32\msiexec.exe", "/i x.msi"))

    assert excinfo.value.exit_code == 1603
    assert "msiexec.exe" in str(excinfo.value)
    assert "1603" in str(excinfo.value)
    assert fake.stdout.closed and fake.stderr.closed


def test_run_kills_process_on_timeout() -> None:
    """Verify the timeout kills the child and raises an explicit timeout error."""
    fake = FakeProcess(hang=True)
    runner = process.ProcessRunner(timeout=0.01, popen=fake)

    with pytest.raises(ProcessTimeoutError):
        runner.run(ProcessInvocation("slow.exe"))

    assert fake.killed is True
    assert fake.stdout.closed and fake.stderr.closed


def test_run_logs_stdout_and_stderr_lines(caplog: pytest.LogCaptureFixture) -> None:
    """Verify stdout lines log at INFO, dot-only lines are dropped and stderr logs at ERROR."""
    caplog.set_level(logging.INFO, logger="sfinstaller")
    fake = FakeProcess(stdout="Downloading\n. . .\n\nDone.\n", stderr="warning: disk\n\n")
    runner = process.ProcessRunner(popen=fake)

    runner.run(ProcessInvocation("tool"))

    stdout_messages = [
        record.message.strip()
        for record in caplog.records
        if record.levelno == logging.INFO and record.message.startswith("    ")
    ]
    error_messages = [record.message.strip() for record in caplog.records if record.levelno == logging.ERROR]
    assert stdout_messages == ["Downloading", "Done."]
    assert error_messages == ["warning: disk"]


def test_run_maps_missing_executable_to_launch_error(tmp_path: Path) -> None:
    """Verify a nonexistent executable raises ProcessLaunchError."""
    runner = process.ProcessRunner(working_dir=tmp_path)

    with pytest.raises(ProcessLaunchError) as excinfo:
        runner.run(ProcessInvocation(str(tmp_path / "missing.exe"), "/quiet"))

    assert excinfo.value.executable.endswith("missing.exe")


def test_run_real_process_streams_output(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """Verify a real child process is run to completion with output streamed."""
    caplog.set_level(logging.INFO, logger="sfinstaller")
    runner = process.ProcessRunner(working_dir=tmp_path)

    result = runner.run(python_invocation("print('hello from child')"))

    assert result.outcome is ProcessOutcome.SUCCESS
    assert any("hello from child" in record.message for record in caplog.records)


def test_run_real_process_failure_and_recognized_codes(tmp_path: Path) -> None:
    """Verify real exit codes flow through classification."""
    runner = process.ProcessRunner(working_dir=tmp_path)

    with pytest.raises(ProcessExitError) as excinfo:
        runner.run(python_invocation("import sys; sys.exit(7)"))
    assert excinfo.value.exit_code == 7

    result = runner.run(python_invocation("import sys; sys.exit(1)", frozenset({1})))
    assert result.effective_exit_code == 0


@pytest.mark.skipif(sys.platform == "win32", reason="relies on POSIX pipe inheritance by grandchildren")
def test_run_returns_while_grandchild_holds_output_open(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    """Verify a lingering grandchild cannot keep ``run`` blocked past the reader join wait."""
    monkeypatch.setattr(process, "READER_JOIN_TIMEOUT", 0.5)
    caplog.set_level(logging.WARNING, logger="sfinstaller")
    pid_file = tmp_path / "grandchild.pid"
    code = (
        "import subprocess, sys; "
        "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)']); "
        f"open({str(pid_file)!r}, 'w').write(str(child.pid))"
    )
    runner = process.ProcessRunner(timeout=60, working_dir=tmp_path)

    started = time.monotonic()
    try:
        result = runner.run(python_invocation(code))
        elapsed = time.monotonic() - started
    finally:
        if pid_file.exists():
            try:
                os.kill(int(pid_file.read_text()), signal.SIGKILL)
            except ProcessLookupError:
                pass

    assert result.outcome is ProcessOutcome.SUCCESS
    assert elapsed < 10
    assert any("still holds its output open" in record.message for record in caplog.records)
