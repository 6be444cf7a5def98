"""Environment-backed runtime settings."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

from sfinstaller.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

DEFAULT_PROCESS_TIMEOUT = 300.0
DEFAULT_WEBPI_BASE_URL = (
    "https://download.microsoft.com/download/C/F/F/CFF3A0B8-99D4-41A2-AE1A-496C08BEB904"
)
DEFAULT_BOOTSTRAP_URL_TEMPLATE = "https://aka.ms/vs/{version}/release/vs_enterprise.exe"


@dataclass(frozen=True, slots=True)
class InstallerSettings:
    """Tunable values for one installation run."""

    process_timeout: float
    download_dir: Path
    scratch_dir: Path
    webpi_base_url: str
    bootstrap_url_template: str

    def webpi_msi_url(self, msi_name: str) -> str:
        """Return the download URL of one Web Platform Installer MSI."""
        return f"{self.webpi_base_url.rstrip('/')}/{msi_name}"

    def bootstrap_url(self, version: int) -> str:
        """Return the bootstrap installer URL for a Visual Studio major version."""
        return self.bootstrap_url_template.format(version=version)


def _parse_timeout(raw: str | None) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_PROCESS_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        raise ConfigurationError(f"SFINSTALLER_PROCESS_TIMEOUT must be a number, got {raw!r}") from None
    if timeout <= 0:
        raise ConfigurationError("SFINSTALLER_PROCESS_TIMEOUT must be positive")
    return timeout


def load_settings(environ: Mapping[str, str] | None = None) -> InstallerSettings:
    """
    Build settings from environment variables, falling back to defaults.

    Parameters:
        environ (Mapping[str, str], optional): Variables to read. Defaults to ``os.environ``.

    Returns:
        InstallerSettings: The resolved settings.

    Raises:
        ConfigurationError: If a value cannot be parsed.
    """
    env = os.environ if environ is None else environ
    download_dir = Path(
        env.get("SFINSTALLER_DOWNLOAD_DIR") or Path(tempfile.gettempdir()) / "sfinstaller"
    )
    scratch_dir = Path(env.get("SFINSTALLER_SCRATCH_DIR") or download_dir / "LocalAppData")
    return InstallerSettings(
        process_timeout=_parse_timeout(env.get("SFINSTALLER_PROCESS_TIMEOUT")),
        download_dir=download_dir,
        scratch_dir=scratch_dir,
        webpi_base_url=env.get("SFINSTALLER_WEBPI_BASE_URL") or DEFAULT_WEBPI_BASE_URL,
        bootstrap_url_template=(
            env.get("SFINSTALLER_BOOTSTRAP_URL_TEMPLATE") or DEFAULT_BOOTSTRAP_URL_TEMPLATE
        ),
    )
