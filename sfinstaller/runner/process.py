"""Launch external installer programs, stream their output and classify exit codes."""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from pathlib import Path
from typing import Callable, Collection, IO

from sfinstaller.config import DEFAULT_PROCESS_TIMEOUT
from sfinstaller.constants import REBOOT_REQUIRED_EXIT_CODE, ProcessOutcome
from sfinstaller.domain.models import ProcessInvocation, ProcessResult
from sfinstaller.errors import ProcessExitError, ProcessLaunchError, ProcessTimeoutError
from sfinstaller.utils import is_blank_output_line, is_windows, quote_argument

log = logging.getLogger(__name__)

DEFAULT_WORKING_DIR = Path(__file__).resolve().parent.parent
# Installers can leave grandchildren holding the pipes open after exit.
READER_JOIN_TIMEOUT = 5.0

PopenFactory = Callable[..., subprocess.Popen]


def classify_exit_code(exit_code: int, acceptable_exit_codes: Collection[int] = ()) -> ProcessOutcome:
    """
    Classify an exit code in priority order.

    ``3010`` means a reboot is pending and counts as success. Codes listed in
    ``acceptable_exit_codes`` are a recognized alternate success. Any other
    non-zero code is a failure.

    Parameters:
        exit_code (int): The exit code reported by the finished process.
        acceptable_exit_codes (Collection[int]): Caller-provided non-failing codes.

    Returns:
        ProcessOutcome: The classification of ``exit_code``.
    """
    if exit_code == REBOOT_REQUIRED_EXIT_CODE:
        return ProcessOutcome.REBOOT_REQUIRED
    if exit_code in acceptable_exit_codes:
        return ProcessOutcome.RECOGNIZED_ALTERNATE_SUCCESS
    if exit_code != 0:
        return ProcessOutcome.FAILURE
    return ProcessOutcome.SUCCESS


def build_command(invocation: ProcessInvocation) -> str | list[str]:
    """
    Build the command handed to ``Popen``.

    Windows receives the raw command line so installer switches such as
    ``/Products:X`` reach the program untouched. Elsewhere the argument
    string is split POSIX-style.
    """
    if is_windows():
        return f"{quote_argument(invocation.executable)} {invocation.arguments}".rstrip()
    return [invocation.executable, *shlex.split(invocation.arguments)]


def _log_stdout_line(line: str) -> None:
    if is_blank_output_line(line):
        return
    log.info(f"    {line.rstrip()}")


def _log_stderr_line(line: str) -> None:
    if not line.strip():
        return
    log.error(f"    {line.rstrip()}")


def _pump(stream: IO[str], handler: Callable[[str], None]) -> None:
    """Feed every line of ``stream`` to ``handler`` until EOF."""
    for line in stream:
        handler(line)


class ProcessRunner:
    """
    Run one external program at a time and turn its exit code into an outcome.

    Output is streamed to the log while the program runs. Each output pipe is
    closed once its reader drains it; a pipe still held open by a leftover
    grandchild is abandoned to its daemon reader so ``run`` never outlives
    the timeout plus the reader join wait.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_PROCESS_TIMEOUT,
        working_dir: Path | None = None,
        popen: PopenFactory = subprocess.Popen,
    ) -> None:
        self.timeout = timeout
        self.working_dir = working_dir or DEFAULT_WORKING_DIR
        self._popen = popen

    def run(self, invocation: ProcessInvocation) -> ProcessResult:
        """
        Run ``invocation`` to completion and classify its exit code.

        Returns:
            ProcessResult: The classified result for successful outcomes.

        Raises:
            ProcessLaunchError: If the program cannot be started.
            ProcessTimeoutError: If the program runs longer than ``timeout``.
            ProcessExitError: If the program exits with an unrecognized non-zero code.
        """
        name = Path(invocation.executable).name
        log.info(f"Running {name} {invocation.arguments}".rstrip())

        try:
            process = self._popen(
                build_command(invocation),
                cwd=str(self.working_dir),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                shell=False,
            )
        except OSError as exc:
            raise ProcessLaunchError(invocation.executable, exc.strerror or str(exc)) from exc

        readers = [
            (threading.Thread(target=_pump, args=(process.stdout, _log_stdout_line), daemon=True), process.stdout),
            (threading.Thread(target=_pump, args=(process.stderr, _log_stderr_line), daemon=True), process.stderr),
        ]
        # Both readers must be draining before we block, or a full pipe deadlocks the child.
        for reader, _stream in readers:
            reader.start()
        try:
            exit_code = self._wait(process, name)
        finally:
            self._release(readers, name)

        return self._classify(invocation, name, exit_code)

    @staticmethod
    def _release(readers: list[tuple[threading.Thread, IO[str]]], name: str) -> None:
        for reader, stream in readers:
            reader.join(READER_JOIN_TIMEOUT)
            if reader.is_alive():
                # Closing blocks on the reader's buffer lock until the pipe's last writer exits.
                log.warning(f"{name} exited but a child process still holds its output open, leaving it behind")
                continue
            stream.close()

    def _wait(self, process: subprocess.Popen, name: str) -> int:
        try:
            return process.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            log.error(f"{name} exceeded the {self.timeout:g}s timeout, terminating it")
            process.kill()
            process.wait()
            raise ProcessTimeoutError(name, self.timeout) from None

    @staticmethod
    def _classify(invocation: ProcessInvocation, name: str, exit_code: int) -> ProcessResult:
        outcome = classify_exit_code(exit_code, invocation.acceptable_exit_codes)
        if outcome is ProcessOutcome.REBOOT_REQUIRED:
            log.warning(f"{name} finished and requires a reboot (exit code {exit_code})")
        elif outcome is ProcessOutcome.RECOGNIZED_ALTERNATE_SUCCESS:
            log.info(f"{name} finished with expected exit code {exit_code}")
        elif outcome is ProcessOutcome.FAILURE:
            raise ProcessExitError(name, exit_code)
        return ProcessResult(invocation=invocation, exit_code=exit_code, outcome=outcome)
