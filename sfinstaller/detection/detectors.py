"""Strategies answering "is this Visual Studio version installed?"."""

from __future__ import annotations

import logging
from typing import Callable, Protocol, Sequence

from sfinstaller.constants import MODERN_VERSION_THRESHOLD, VisualStudioVersion
from sfinstaller.domain.models import VisualStudioInstance
from sfinstaller.errors import UnsupportedVersionError
from sfinstaller.system.registry import RegistryBackend

log = logging.getLogger(__name__)


class SetupDiscovery(Protocol):
    """Source of installed Visual Studio instances."""

    def instances(self) -> list[VisualStudioInstance]:
        """Return every installed instance."""


class VersionDetector(Protocol):
    """Decide whether a Visual Studio major version is installed."""

    def is_installed(self, version: int) -> bool:
        """Return whether ``version`` is present on this machine."""


class RegistryKeyDetector:
    """Detect an installation by the presence of any of a fixed set of registry keys."""

    def __init__(self, registry: RegistryBackend, key_paths: Sequence[str], hive: str = "HKLM") -> None:
        self.registry = registry
        self.key_paths = tuple(key_paths)
        self.hive = hive

    def is_installed(self, version: int) -> bool:
        for path in self.key_paths:
            if self.registry.key_exists(self.hive, path):
                log.debug(f"Found {self.hive}\\{path}")
                return True
        return False


def matching_instances(instances: Sequence[VisualStudioInstance], version: int) -> list[VisualStudioInstance]:
    """Return the instances whose installation version has major ``version``."""
    return [instance for instance in instances if instance.major_version == version]


class SetupInstanceDetector:
    """Detect an installation by enumerating setup instances and matching the major version."""

    def __init__(self, discovery: SetupDiscovery) -> None:
        self.discovery = discovery

    def is_installed(self, version: int) -> bool:
        return bool(matching_instances(self.discovery.instances(), version))


def legacy_registry_keys(version: int) -> tuple[str, ...]:
    """Return the registry keys a pre-setup-engine Visual Studio writes on install."""
    return (
        rf"SOFTWARE\WOW6432Node\Microsoft\VisualStudio\{version}.0",
        rf"SOFTWARE\Microsoft\VisualStudio\{version}.0",
    )


def _registry_detector(version: int, registry: RegistryBackend, discovery: SetupDiscovery) -> VersionDetector:
    return RegistryKeyDetector(registry, legacy_registry_keys(version))


def _setup_detector(version: int, registry: RegistryBackend, discovery: SetupDiscovery) -> VersionDetector:
    return SetupInstanceDetector(discovery)


DetectorFactory = Callable[[int, RegistryBackend, SetupDiscovery], VersionDetector]

# Versions below MODERN_VERSION_THRESHOLD predate setup discovery.
DETECTOR_FACTORIES: dict[int, DetectorFactory] = {
    version.value: _registry_detector if version.value < MODERN_VERSION_THRESHOLD else _setup_detector
    for version in VisualStudioVersion
}


def select_detector(
    version: int,
    *,
    registry: RegistryBackend,
    discovery: SetupDiscovery,
) -> VersionDetector:
    """
    Pick the detection strategy for a Visual Studio major version.

    Raises:
        UnsupportedVersionError: For versions with no detection strategy.
    """
    try:
        factory = DETECTOR_FACTORIES[version]
    except KeyError:
        raise UnsupportedVersionError(str(version)) from None
    return factory(version, registry, discovery)
