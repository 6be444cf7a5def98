"""Installation workflow: preconditions, SDK install and Visual Studio tooling."""

from __future__ import annotations

import logging
import os
from pathlib import Path, PureWindowsPath
from typing import Callable, Mapping, Protocol

from sfinstaller.application.preconditions import (
    check_elevation,
    check_ide_installed,
    check_platform,
    check_runtime_version,
)
from sfinstaller.config import InstallerSettings, load_settings
from sfinstaller.constants import (
    AZURE_WORKLOAD_ID,
    MODERN_VERSION_THRESHOLD,
    SDK_PRODUCT_ID,
    SERVICE_FABRIC_TOOLS_COMPONENT_ID,
    VS_INSTALLER_EXECUTABLE,
    VS_INSTALLER_NOOP_EXIT_CODES,
    VS_INSTALLER_PRODUCT_CODE,
    WEBPI_MSI_NAMES,
    label_for_version,
    resolve_version,
)
from sfinstaller.detection.detectors import SetupDiscovery, matching_instances, select_detector
from sfinstaller.detection.vswhere import VsWhere
from sfinstaller.domain.models import (
    InstallReport,
    InstallRequest,
    ProcessInvocation,
    ProcessResult,
    RunLog,
    VisualStudioInstance,
)
from sfinstaller.downloads import Downloader
from sfinstaller.errors import InstallerToolNotFoundError, SfInstallerError
from sfinstaller.runner.process import ProcessRunner
from sfinstaller.system.registry import (
    RegistryBackend,
    WindowsRegistry,
    executable_from_command,
    find_uninstall_entry,
)
from sfinstaller.system.scratch import ScratchLocalAppData
from sfinstaller.utils import processor_architecture, quote_argument

log = logging.getLogger(__name__)

WEBPI_MARKER_KEY = r"SOFTWARE\Microsoft\WebPlatformInstaller"
WEBPI_EXECUTABLE = "WebpiCmd.exe"
MSIEXEC = "msiexec.exe"

STEP_PRECONDITIONS = "preconditions"
STEP_WEBPI = "web-platform-installer"
STEP_SDK = "service-fabric-sdk"
STEP_TOOLS = "service-fabric-tools"


class Runner(Protocol):
    """Anything that runs a ``ProcessInvocation`` like ``ProcessRunner``."""

    def run(self, invocation: ProcessInvocation) -> ProcessResult:
        """Run one external program and return its classified result."""


class FileDownloader(Protocol):
    """Anything that downloads a URL to a path like ``Downloader``."""

    def download(self, url: str, destination: Path) -> Path:
        """Download ``url`` into ``destination``."""


def locate_webpicmd(registry: RegistryBackend, environ: Mapping[str, str] | None = None) -> PureWindowsPath:
    """Return the ``WebpiCmd.exe`` path from the install marker, or its default location."""
    value = registry.read_value("HKLM", WEBPI_MARKER_KEY, "InstallPath")
    if value is not None and isinstance(value[0], str) and value[0].strip():
        return PureWindowsPath(value[0].strip()) / WEBPI_EXECUTABLE
    env = os.environ if environ is None else environ
    program_files = env.get("ProgramFiles") or r"C:\Program Files"
    return PureWindowsPath(program_files) / "Microsoft" / "Web Platform Installer" / WEBPI_EXECUTABLE


def locate_vs_installer(registry: RegistryBackend) -> PureWindowsPath:
    """
    Find ``vs_installer.exe`` through the Visual Studio Installer's Uninstall entry.

    Raises:
        InstallerToolNotFoundError: If no matching entry is registered.
    """
    entry = find_uninstall_entry(
        registry,
        product_code=VS_INSTALLER_PRODUCT_CODE,
        command_fragment=VS_INSTALLER_EXECUTABLE,
    )
    if entry is None:
        raise InstallerToolNotFoundError("The Visual Studio Installer is not registered on this machine")
    # Instance entries point InstallLocation at the IDE folder, not the installer's.
    if entry.key_name.lower() == VS_INSTALLER_PRODUCT_CODE.lower() and entry.install_location:
        return PureWindowsPath(entry.install_location) / VS_INSTALLER_EXECUTABLE
    if entry.uninstall_string:
        return PureWindowsPath(executable_from_command(entry.uninstall_string))
    raise InstallerToolNotFoundError(f"Uninstall entry {entry.key_name} does not point at vs_installer.exe")


def sdk_offline_invocation(webpicmd: PureWindowsPath, cache_dir: Path) -> ProcessInvocation:
    """Build the call that stages the SDK feed and payload into ``cache_dir``."""
    return ProcessInvocation(
        str(webpicmd),
        f"/Offline /Products:{SDK_PRODUCT_ID} /Path:{quote_argument(str(cache_dir))}",
    )


def sdk_install_invocation(webpicmd: PureWindowsPath, cache_dir: Path) -> ProcessInvocation:
    """Build the call that installs the SDK from the staged feed."""
    feed = cache_dir / "feeds" / "latest" / "webproductlist.xml"
    return ProcessInvocation(
        str(webpicmd),
        f"/Install /Products:{SDK_PRODUCT_ID} /AcceptEULA /XML:{quote_argument(str(feed))}",
    )


def bootstrap_update_invocation(bootstrap: Path, instance: VisualStudioInstance) -> ProcessInvocation:
    """Build the bootstrapper call that brings ``instance`` up to date."""
    return ProcessInvocation(
        str(bootstrap),
        f"update --installPath {quote_argument(instance.installation_path)} --quiet --norestart --wait",
        acceptable_exit_codes=VS_INSTALLER_NOOP_EXIT_CODES,
    )


def tools_modify_invocation(vs_installer: PureWindowsPath, instance: VisualStudioInstance) -> ProcessInvocation:
    """Build the ``vs_installer modify`` call adding the Azure workload and Service Fabric Tools."""
    return ProcessInvocation(
        str(vs_installer),
        f"modify --installPath {quote_argument(instance.installation_path)} "
        f"--add {AZURE_WORKLOAD_ID} --add {SERVICE_FABRIC_TOOLS_COMPONENT_ID} --quiet --norestart",
        acceptable_exit_codes=VS_INSTALLER_NOOP_EXIT_CODES,
    )


class Installer:
    """
    Sequence one installation run.

    Every step either completes or raises; the first ``SfInstallerError``
    stops the run and is returned inside the ``InstallReport``. The Local
    AppData redirect is reverted no matter where the run stopped.
    """

    def __init__(
        self,
        *,
        registry: RegistryBackend,
        discovery: SetupDiscovery,
        runner: Runner,
        downloader: FileDownloader,
        settings: InstallerSettings,
        architecture: str | None = None,
    ) -> None:
        self.registry = registry
        self.discovery = discovery
        self.runner = runner
        self.downloader = downloader
        self.settings = settings
        self.architecture = architecture or processor_architecture()

    @classmethod
    def for_this_machine(cls, settings: InstallerSettings) -> "Installer":
        """Wire the installer to the real registry, vswhere, subprocesses and network."""
        return cls(
            registry=WindowsRegistry(),
            discovery=VsWhere(),
            runner=ProcessRunner(timeout=settings.process_timeout),
            downloader=Downloader(),
            settings=settings,
        )

    def run(self, request: InstallRequest) -> InstallReport:
        """Execute every step for ``request`` and report how far it got."""
        run_log = RunLog(version_label=request.version_label)
        try:
            with ScratchLocalAppData(self.registry, self.settings.scratch_dir):
                self._install(request, run_log)
        except SfInstallerError as exc:
            log.error(str(exc))
            return run_log.as_report(error=exc)
        return run_log.as_report()

    def _install(self, request: InstallRequest, run_log: RunLog) -> None:
        check_runtime_version()
        version = resolve_version(request.version_label)
        run_log.version = version
        detector = select_detector(version, registry=self.registry, discovery=self.discovery)
        check_ide_installed(request.version_label, version, detector)
        run_log.mark_completed(STEP_PRECONDITIONS)

        webpicmd = self.ensure_webpi(run_log)
        run_log.mark_completed(STEP_WEBPI)

        self.install_sdk(webpicmd, run_log)
        run_log.mark_completed(STEP_SDK)

        if version < MODERN_VERSION_THRESHOLD:
            log.info(f"Skipping Service Fabric Tools, {request.version_label} ships them with the SDK")
            return
        self.install_tools(version, run_log)
        run_log.mark_completed(STEP_TOOLS)

    def _run(self, invocation: ProcessInvocation, run_log: RunLog) -> ProcessResult:
        result = self.runner.run(invocation)
        run_log.record(result)
        return result

    def ensure_webpi(self, run_log: RunLog) -> PureWindowsPath:
        """Install the Web Platform Installer unless its marker key is present."""
        if self.registry.key_exists("HKLM", WEBPI_MARKER_KEY):
            log.info("Web Platform Installer is already installed")
            return locate_webpicmd(self.registry)

        msi_name = WEBPI_MSI_NAMES[self.architecture]
        log.info(f"Installing Web Platform Installer ({self.architecture})")
        msi = self.downloader.download(
            self.settings.webpi_msi_url(msi_name), self.settings.download_dir / msi_name
        )
        self._run(ProcessInvocation(MSIEXEC, f"/i {quote_argument(str(msi))} /qn /norestart"), run_log)

        if not self.registry.key_exists("HKLM", WEBPI_MARKER_KEY):
            raise InstallerToolNotFoundError("Web Platform Installer is still missing after installation")
        return locate_webpicmd(self.registry)

    def install_sdk(self, webpicmd: PureWindowsPath, run_log: RunLog) -> None:
        """Stage the SDK into an offline cache, then install it from that cache."""
        cache_dir = self.settings.download_dir / "webpi-offline"
        log.info(f"Staging {SDK_PRODUCT_ID} into {cache_dir}")
        self._run(sdk_offline_invocation(webpicmd, cache_dir), run_log)
        log.info(f"Installing {SDK_PRODUCT_ID}")
        self._run(sdk_install_invocation(webpicmd, cache_dir), run_log)

    def install_tools(self, version: int, run_log: RunLog) -> None:
        """Add the Azure workload and Service Fabric Tools to every matching instance."""
        bootstrap = self.downloader.download(
            self.settings.bootstrap_url(version),
            self.settings.download_dir / f"vs_enterprise_{version}.exe",
        )
        vs_installer = locate_vs_installer(self.registry)

        instances = matching_instances(self.discovery.instances(), version)
        if not instances:
            log.warning(f"No {label_for_version(version)} instances left to modify")
        for index, instance in enumerate(instances, 1):
            log.info(f"{index}/{len(instances)}) Updating {instance.display_name or instance.instance_id}")
            log.info(f"    Path: {instance.installation_path}")
            self._run(bootstrap_update_invocation(bootstrap, instance), run_log)
            self._run(tools_modify_invocation(vs_installer, instance), run_log)


InstallerFactory = Callable[[InstallerSettings], Installer]


def execute_install(
    request: InstallRequest,
    *,
    installer_factory: InstallerFactory = Installer.for_this_machine,
    settings_loader: Callable[[], InstallerSettings] = load_settings,
) -> InstallReport:
    """
    Check the label and the host, build an installer and run ``request``.

    An unknown label is reported ahead of host problems. These checks happen
    before the installer touches the registry, so a bad label or a
    non-Windows or non-elevated run fails without side effects.
    """
    try:
        resolve_version(request.version_label)
        check_platform()
        check_elevation()
        installer = installer_factory(settings_loader())
    except SfInstallerError as exc:
        log.error(str(exc))
        return InstallReport(version_label=request.version_label, error=exc)
    return installer.run(request)
