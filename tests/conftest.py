"""Shared test doubles for registry, discovery, process and download collaborators."""

from __future__ import annotations

from pathlib import Path, PureWindowsPath
from typing import Any, Callable

import pytest

from sfinstaller.config import InstallerSettings
from sfinstaller.domain.models import ProcessInvocation, ProcessResult, VisualStudioInstance
from sfinstaller.errors import ProcessExitError
from sfinstaller.runner.process import classify_exit_code
from sfinstaller.constants import ProcessOutcome
from sfinstaller.system.registry import REG_EXPAND_SZ, REG_SZ
from sfinstaller.system.scratch import LOCAL_APPDATA_VALUE, SHELL_FOLDERS_HIVE, SHELL_FOLDERS_KEY

ORIGINAL_LOCAL_APPDATA = r"%USERPROFILE%\AppData\Local"


class FakeRegistry:
    """In-memory ``RegistryBackend`` with case-insensitive key paths."""

    def __init__(self) -> None:
        """Start with an empty registry and no recorded writes."""
        self._keys: dict[tuple[str, str], tuple[str, dict[str, tuple[Any, int]]]] = {}
        self.writes: list[tuple[str, str, str, Any, int]] = []

    def add_key(self, hive: str, path: str) -> dict[str, tuple[Any, int]]:
        """Create a key (if missing) and return its value mapping."""
        entry = self._keys.setdefault((hive, path.lower()), (path, {}))
        return entry[1]

    def set(self, hive: str, path: str, name: str, data: Any, value_type: int = REG_SZ) -> None:
        """Seed a value without recording it as a write."""
        self.add_key(hive, path)[name] = (data, value_type)

    def key_exists(self, hive: str, path: str) -> bool:
        """Return whether the key was created."""
        return (hive, path.lower()) in self._keys

    def read_value(self, hive: str, path: str, name: str) -> tuple[Any, int] | None:
        """Return a seeded or written value."""
        entry = self._keys.get((hive, path.lower()))
        if entry is None:
            return None
        return entry[1].get(name)

    def write_value(self, hive: str, path: str, name: str, data: Any, value_type: int) -> None:
        """Record and apply a write."""
        self.writes.append((hive, path, name, data, value_type))
        self.set(hive, path, name, data, value_type)

    def subkeys(self, hive: str, path: str) -> list[str]:
        """Return direct children of ``path`` in insertion order."""
        prefix = path.lower() + "\\"
        names: list[str] = []
        for (key_hive, lowered), (original, _values) in self._keys.items():
            if key_hive != hive or not lowered.startswith(prefix):
                continue
            child = original[len(prefix):].split("\\", 1)[0]
            if child not in names:
                names.append(child)
        return names

    def values(self, hive: str, path: str) -> dict[str, tuple[Any, int]]:
        """Return a copy of every value stored under ``path``."""
        entry = self._keys.get((hive, path.lower()))
        if entry is None:
            return {}
        return dict(entry[1])

    def local_appdata(self) -> tuple[Any, int] | None:
        """Return the default profile's Local AppData value."""
        return self.read_value(SHELL_FOLDERS_HIVE, SHELL_FOLDERS_KEY, LOCAL_APPDATA_VALUE)


class FakeDiscovery:
    """Setup discovery double returning fixed instances and counting queries."""

    def __init__(self, instances: list[VisualStudioInstance] | None = None) -> None:
        """Store the instances to report."""
        self._instances = list(instances or [])
        self.calls = 0

    def instances(self) -> list[VisualStudioInstance]:
        """Return the configured instances."""
        self.calls += 1
        return list(self._instances)


class RecordingRunner:
    """Runner double classifying scripted exit codes like ``ProcessRunner``."""

    def __init__(
        self,
        exit_codes: dict[str, int] | None = None,
        on_run: Callable[[ProcessInvocation], None] | None = None,
    ) -> None:
        """Map executable file names to exit codes; unknown names exit with 0."""
        self.exit_codes = {name.lower(): code for name, code in (exit_codes or {}).items()}
        self.on_run = on_run
        self.invocations: list[ProcessInvocation] = []

    def run(self, invocation: ProcessInvocation) -> ProcessResult:
        """Record the invocation and classify its scripted exit code."""
        self.invocations.append(invocation)
        if self.on_run is not None:
            self.on_run(invocation)
        name = PureWindowsPath(invocation.executable).name
        exit_code = self.exit_codes.get(name.lower(), 0)
        outcome = classify_exit_code(exit_code, invocation.acceptable_exit_codes)
        if outcome is ProcessOutcome.FAILURE:
            raise ProcessExitError(name, exit_code)
        return ProcessResult(invocation=invocation, exit_code=exit_code, outcome=outcome)

    @property
    def executables(self) -> list[str]:
        """Return the file names of every executable run so far."""
        return [PureWindowsPath(invocation.executable).name for invocation in self.invocations]


class FakeDownloader:
    """Downloader double writing placeholder bytes or raising a configured error."""

    def __init__(self, error: Exception | None = None) -> None:
        """Optionally fail every download with ``error``."""
        self.error = error
        self.urls: list[str] = []

    def download(self, url: str, destination: Path) -> Path:
        """Record the URL and create ``destination``."""
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(b"binary")
        return destination


@pytest.fixture
def registry() -> FakeRegistry:
    """Registry seeded with the stock Local AppData value."""
    fake = FakeRegistry()
    fake.set(
        SHELL_FOLDERS_HIVE,
        SHELL_FOLDERS_KEY,
        LOCAL_APPDATA_VALUE,
        ORIGINAL_LOCAL_APPDATA,
        REG_EXPAND_SZ,
    )
    return fake


@pytest.fixture
def settings(tmp_path: Path) -> InstallerSettings:
    """Settings pointing every directory into ``tmp_path``."""
    return InstallerSettings(
        process_timeout=5.0,
        download_dir=tmp_path / "downloads",
        scratch_dir=tmp_path / "scratch",
        webpi_base_url="https://downloads.example/webpi",
        bootstrap_url_template="https://aka.ms/vs/{version}/release/vs_enterprise.exe",
    )
