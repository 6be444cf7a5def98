"""Setup discovery through ``vswhere.exe``, the locator shipped with the Visual Studio Installer."""

from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Mapping

from sfinstaller.domain.models import VisualStudioInstance
from sfinstaller.errors import SetupDiscoveryError

log = logging.getLogger(__name__)

VSWHERE_RELATIVE_PATH = Path("Microsoft Visual Studio") / "Installer" / "vswhere.exe"
VSWHERE_ARGUMENTS = ("-all", "-prerelease", "-format", "json", "-utf8")
VSWHERE_TIMEOUT = 60.0


def default_vswhere_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return where the Visual Studio Installer places ``vswhere.exe``."""
    env = os.environ if environ is None else environ
    program_files = env.get("ProgramFiles(x86)") or env.get("ProgramFiles") or r"C:\Program Files (x86)"
    return Path(program_files) / VSWHERE_RELATIVE_PATH


def parse_instances(output: str) -> list[VisualStudioInstance]:
    """
    Parse ``vswhere -format json`` output into instances.

    Raises:
        SetupDiscoveryError: If the output is not a JSON list of objects.
    """
    if not output.strip():
        return []
    try:
        payload = json.loads(output)
    except json.JSONDecodeError as exc:
        raise SetupDiscoveryError(f"vswhere returned invalid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise SetupDiscoveryError("vswhere returned an unexpected payload")

    instances: list[VisualStudioInstance] = []
    for item in payload:
        if not isinstance(item, dict):
            raise SetupDiscoveryError("vswhere returned an unexpected instance entry")
        instances.append(
            VisualStudioInstance(
                instance_id=str(item.get("instanceId", "")),
                installation_path=str(item.get("installationPath", "")),
                installation_version=str(item.get("installationVersion", "")),
                display_name=str(item.get("displayName", "")),
            )
        )
    return instances


class VsWhere:
    """Enumerate installed Visual Studio instances by running ``vswhere.exe``."""

    def __init__(
        self,
        executable: Path | None = None,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.executable = executable or default_vswhere_path()
        self._run = run

    def instances(self) -> list[VisualStudioInstance]:
        """Return every installed instance, or nothing when vswhere is absent."""
        if not self.executable.is_file():
            log.info(f"vswhere not found at {self.executable}, assuming no instances")
            return []
        try:
            completed = self._run(
                [str(self.executable), *VSWHERE_ARGUMENTS],
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=VSWHERE_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise SetupDiscoveryError(f"Failed to run vswhere: {exc}") from exc
        if completed.returncode != 0:
            raise SetupDiscoveryError(f"vswhere failed with exit code {completed.returncode}")
        instances = parse_instances(completed.stdout)
        log.debug(f"vswhere reported {len(instances)} instance(s)")
        return instances
