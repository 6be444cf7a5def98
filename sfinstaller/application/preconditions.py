"""Checks that must pass before anything on the machine is changed."""

from __future__ import annotations

import logging
import sys
from typing import Sequence

from sfinstaller.constants import MINIMUM_RUNTIME_VERSION
from sfinstaller.detection.detectors import VersionDetector
from sfinstaller.errors import (
    ElevationRequiredError,
    IdeNotInstalledError,
    RuntimeVersionError,
    UnsupportedPlatformError,
)
from sfinstaller.utils import is_elevated, is_windows

log = logging.getLogger(__name__)


def check_runtime_version(
    version_info: Sequence[int] | None = None,
    minimum: tuple[int, int] = MINIMUM_RUNTIME_VERSION,
) -> None:
    """Fail fast when the interpreter is older than ``minimum``."""
    current = tuple((version_info or sys.version_info)[:2])
    if current < minimum:
        raise RuntimeVersionError(
            "Python {}.{} or newer is required, found {}.{}".format(*minimum, *current)
        )


def check_platform() -> None:
    """Fail fast when not running on Windows."""
    if not is_windows():
        raise UnsupportedPlatformError(f"This installer only runs on Windows, not {sys.platform}")


def check_elevation() -> None:
    """Fail fast when the process lacks administrator rights."""
    if not is_elevated():
        raise ElevationRequiredError("This installer must be run from an elevated (administrator) prompt")


def check_ide_installed(label: str, version: int, detector: VersionDetector) -> None:
    """Fail when ``detector`` cannot find the requested Visual Studio version."""
    if not detector.is_installed(version):
        raise IdeNotInstalledError(label)
    log.info(f"Found {label}")
