"""Tests for immutable run models."""

from __future__ import annotations

from sfinstaller.constants import ProcessOutcome
from sfinstaller.domain.models import (
    InstallReport,
    ProcessInvocation,
    ProcessResult,
    RunLog,
    VisualStudioInstance,
)
from sfinstaller.errors import DownloadError


def result(exit_code: int, outcome: ProcessOutcome) -> ProcessResult:
    """Build a result for a dummy invocation."""
    return ProcessResult(invocation=ProcessInvocation("tool.exe"), exit_code=exit_code, outcome=outcome)


def test_process_result_effective_exit_code() -> None:
    """Verify only recognized alternate codes are reset to zero."""
    assert result(1, ProcessOutcome.RECOGNIZED_ALTERNATE_SUCCESS).effective_exit_code == 0
    assert result(3010, ProcessOutcome.REBOOT_REQUIRED).effective_exit_code == 3010
    assert result(0, ProcessOutcome.SUCCESS).effective_exit_code == 0
    assert result(5, ProcessOutcome.FAILURE).succeeded is False


def test_instance_major_version() -> None:
    """Verify the major version is parsed from the installation version."""
    assert VisualStudioInstance("a", "C:\\VS", "15.9.28307.1500").major_version == 15
    assert VisualStudioInstance("a", "C:\\VS", "").major_version is None


def test_run_log_builds_report() -> None:
    """Verify step and reboot tracking end up in the report."""
    run_log = RunLog(version_label="Visual Studio 2017", version=15)
    run_log.mark_completed("preconditions")
    run_log.record(result(3010, ProcessOutcome.REBOOT_REQUIRED))
    run_log.record(result(0, ProcessOutcome.SUCCESS))

    report = run_log.as_report()

    assert report == InstallReport(
        version_label="Visual Studio 2017",
        version=15,
        completed_steps=("preconditions",),
        reboot_required=True,
        error=None,
    )
    assert report.succeeded is True


def test_run_log_report_carries_error() -> None:
    """Verify a failed run reports its error."""
    error = DownloadError("offline")

    report = RunLog(version_label="Visual Studio 2015").as_report(error=error)

    assert report.succeeded is False
    assert report.error is error
