"""Immutable models shared between the CLI, orchestrator and process runner."""

from __future__ import annotations

from dataclasses import dataclass, field

from sfinstaller.constants import ProcessOutcome
from sfinstaller.errors import SfInstallerError


@dataclass(frozen=True, slots=True)
class ProcessInvocation:
    """One external program call: what to run and which exit codes are fine."""

    executable: str
    arguments: str = ""
    acceptable_exit_codes: frozenset[int] = frozenset()

    def __post_init__(self) -> None:
        if not self.executable:
            raise ValueError("FileName must be provided")


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Classified outcome of a finished invocation."""

    invocation: ProcessInvocation
    exit_code: int
    outcome: ProcessOutcome

    @property
    def succeeded(self) -> bool:
        """Return whether the outcome counts as success."""
        return self.outcome is not ProcessOutcome.FAILURE

    @property
    def reboot_required(self) -> bool:
        """Return whether the program asked for a reboot."""
        return self.outcome is ProcessOutcome.REBOOT_REQUIRED

    @property
    def effective_exit_code(self) -> int:
        """Return the exit code callers should observe; recognized codes read as 0."""
        if self.outcome is ProcessOutcome.RECOGNIZED_ALTERNATE_SUCCESS:
            return 0
        return self.exit_code


@dataclass(frozen=True, slots=True)
class VisualStudioInstance:
    """One installed Visual Studio instance reported by setup discovery."""

    instance_id: str
    installation_path: str
    installation_version: str
    display_name: str = ""

    @property
    def major_version(self) -> int | None:
        """Return the major component of ``installation_version``, if parseable."""
        head = self.installation_version.split(".", 1)[0]
        try:
            return int(head)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class InstallRequest:
    """Inputs required to execute one installation run."""

    version_label: str


@dataclass(frozen=True, slots=True)
class InstallReport:
    """Result of one installation run: completed steps or the error that stopped it."""

    version_label: str
    version: int | None = None
    completed_steps: tuple[str, ...] = ()
    reboot_required: bool = False
    error: SfInstallerError | None = None

    @property
    def succeeded(self) -> bool:
        """Return whether the run finished without a fatal error."""
        return self.error is None


@dataclass(slots=True)
class RunLog:
    """Accumulate step progress and expose an immutable report."""

    version_label: str
    version: int | None = None
    completed_steps: list[str] = field(default_factory=list)
    reboot_required: bool = False

    def mark_completed(self, step: str) -> None:
        """Record a finished orchestration step."""
        self.completed_steps.append(step)

    def record(self, result: ProcessResult) -> None:
        """Fold a process result's reboot request into the run state."""
        self.reboot_required = self.reboot_required or result.reboot_required

    def as_report(self, error: SfInstallerError | None = None) -> InstallReport:
        """Build the immutable report for the CLI boundary."""
        return InstallReport(
            version_label=self.version_label,
            version=self.version,
            completed_steps=tuple(self.completed_steps),
            reboot_required=self.reboot_required,
            error=error,
        )
