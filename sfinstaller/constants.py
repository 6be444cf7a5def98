from enum import Enum

from sfinstaller.errors import UnsupportedVersionError


class VisualStudioVersion(Enum):
    """Supported Visual Studio releases mapped to their major version numbers."""
    VS2015 = 14
    VS2017 = 15
    VS2019 = 16
    VS2022 = 17

    @property
    def label(self) -> str:
        return f"Visual Studio {self.name[2:]}"


class ProcessOutcome(Enum):
    """Classification of a finished external process."""
    SUCCESS = 0
    REBOOT_REQUIRED = 1
    RECOGNIZED_ALTERNATE_SUCCESS = 2
    FAILURE = 3


VERSION_LABELS: dict[str, int] = {
    version.label: version.value for version in VisualStudioVersion
}
VERSION_LABEL_CHOICES = tuple(VERSION_LABELS)

# Versions at or above this use setup discovery and get the Service Fabric Tools.
MODERN_VERSION_THRESHOLD = 15
MINIMUM_RUNTIME_VERSION = (3, 12)

REBOOT_REQUIRED_EXIT_CODE = 3010
# vs_installer and the bootstrapper report "nothing to do" as 1.
VS_INSTALLER_NOOP_EXIT_CODES = frozenset({1})

SDK_PRODUCT_ID = "MicrosoftAzure-ServiceFabric-CoreSDK"
AZURE_WORKLOAD_ID = "Microsoft.VisualStudio.Workload.Azure"
SERVICE_FABRIC_TOOLS_COMPONENT_ID = "Microsoft.VisualStudio.Component.Azure.ServiceFabric.Tools"

VS_INSTALLER_PRODUCT_CODE = "{6F320B93-EE3C-4826-85E0-ADF79F8D4C61}"
VS_INSTALLER_EXECUTABLE = "vs_installer.exe"

WEBPI_MSI_NAMES = {
    "amd64": "WebPlatformInstaller_amd64_en-US.msi",
    "x86": "WebPlatformInstaller_x86_en-US.msi",
}


def resolve_version(label: str) -> int:
    """
    Map a Visual Studio label such as ``"Visual Studio 2017"`` to its major version.

    Raises:
        UnsupportedVersionError: If the label is not one of ``VERSION_LABEL_CHOICES``.
    """
    try:
        return VERSION_LABELS[label]
    except KeyError:
        raise UnsupportedVersionError(label) from None


def label_for_version(version: int) -> str:
    """Return the human-readable label for a supported major version number."""
    return VisualStudioVersion(version).label
