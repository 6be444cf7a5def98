"""Domain-specific exceptions raised by sfinstaller runtime components."""

from __future__ import annotations


class SfInstallerError(Exception):
    """Base exception for sfinstaller-specific runtime failures."""


class ConfigurationError(SfInstallerError):
    """Raised when the run is misconfigured or the machine does not qualify."""


class UnsupportedVersionError(ConfigurationError):
    """Raised when a Visual Studio label is not part of the supported set."""

    def __init__(self, label: str) -> None:
        super().__init__(f"Unsupported Visual Studio version: {label!r}")
        self.label = label


class RuntimeVersionError(ConfigurationError):
    """Raised when the running interpreter is older than required."""


class UnsupportedPlatformError(ConfigurationError):
    """Raised when the tool is started on a non-Windows machine."""


class ElevationRequiredError(ConfigurationError):
    """Raised when the caller lacks administrator rights."""


class IdeNotInstalledError(ConfigurationError):
    """Raised when the requested Visual Studio version is not installed."""

    def __init__(self, label: str) -> None:
        super().__init__(f"{label} must be installed before proceeding")
        self.label = label


class ExternalFailureError(SfInstallerError):
    """Raised when an external tool, download or system query fails."""


class InstallerToolNotFoundError(ExternalFailureError):
    """Raised when a required installer executable cannot be located."""


class ScratchFolderError(ExternalFailureError):
    """Raised when the Local AppData redirect cannot be applied or reverted."""


class SetupDiscoveryError(ExternalFailureError):
    """Raised when the setup discovery helper returns unusable output."""


class ProcessLaunchError(ExternalFailureError):
    """Raised when an external process cannot be started."""

    def __init__(self, executable: str, reason: str) -> None:
        super().__init__(f"Failed to start {executable}: {reason}")
        self.executable = executable


class ProcessExitError(ExternalFailureError):
    """Raised when an external process exits with an unrecognized non-zero code."""

    def __init__(self, executable: str, exit_code: int) -> None:
        super().__init__(f"{executable} failed with exit code {exit_code}")
        self.executable = executable
        self.exit_code = exit_code


class ProcessTimeoutError(ExternalFailureError):
    """Raised when an external process outlives the configured timeout."""

    def __init__(self, executable: str, timeout: float) -> None:
        super().__init__(f"{executable} did not finish within {timeout:g} seconds")
        self.executable = executable
        self.timeout = timeout


class DownloadError(ExternalFailureError):
    """Raised when a download request fails."""


class DownloadedFileMissingError(ExternalFailureError):
    """Raised when a download completed but left no usable file behind."""
