"""Windows registry access behind a small protocol so callers can use fakes."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Iterator, Protocol

try:
    import winreg
except ImportError:  # not on Windows
    winreg = None

log = logging.getLogger(__name__)

REG_SZ = 1
REG_EXPAND_SZ = 2

UNINSTALL_KEYS = (
    r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
    r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall",
)


class RegistryBackend(Protocol):
    """Minimal registry surface used by detectors, the orchestrator and the scratch patch."""

    def key_exists(self, hive: str, path: str) -> bool:
        """Return whether ``hive\\path`` exists."""

    def read_value(self, hive: str, path: str, name: str) -> tuple[Any, int] | None:
        """Return ``(data, type)`` of a value, or None when key or value is missing."""

    def write_value(self, hive: str, path: str, name: str, data: Any, value_type: int) -> None:
        """Create or overwrite a value."""

    def subkeys(self, hive: str, path: str) -> list[str]:
        """Return the direct subkey names of a key, or an empty list if it is missing."""

    def values(self, hive: str, path: str) -> dict[str, tuple[Any, int]]:
        """Return every value of a key as ``name -> (data, type)``, or an empty dict if it is missing."""


@dataclass(frozen=True, slots=True)
class UninstallEntry:
    """One program registered under the Uninstall keys."""

    key_name: str
    uninstall_string: str
    install_location: str


class WindowsRegistry:
    """``RegistryBackend`` implementation using the stdlib ``winreg`` module."""

    def __init__(self) -> None:
        if winreg is None:
            raise RuntimeError("The Windows registry is only available on Windows")
        self._hives = {
            "HKLM": winreg.HKEY_LOCAL_MACHINE,
            "HKCU": winreg.HKEY_CURRENT_USER,
            "HKU": winreg.HKEY_USERS,
        }

    def key_exists(self, hive: str, path: str) -> bool:
        try:
            with winreg.OpenKey(self._hives[hive], path):
                return True
        except OSError:
            return False

    def read_value(self, hive: str, path: str, name: str) -> tuple[Any, int] | None:
        try:
            with winreg.OpenKey(self._hives[hive], path) as key:
                return winreg.QueryValueEx(key, name)
        except FileNotFoundError:
            return None

    def write_value(self, hive: str, path: str, name: str, data: Any, value_type: int) -> None:
        with winreg.CreateKeyEx(self._hives[hive], path, 0, winreg.KEY_SET_VALUE) as key:
            winreg.SetValueEx(key, name, 0, value_type, data)

    def subkeys(self, hive: str, path: str) -> list[str]:
        names: list[str] = []
        try:
            with winreg.OpenKey(self._hives[hive], path) as key:
                for index in itertools.count():
                    try:
                        names.append(winreg.EnumKey(key, index))
                    except OSError:
                        # no more keys
                        break
        except FileNotFoundError:
            pass
        return names

    def values(self, hive: str, path: str) -> dict[str, tuple[Any, int]]:
        found: dict[str, tuple[Any, int]] = {}
        try:
            with winreg.OpenKey(self._hives[hive], path) as key:
                for index in itertools.count():
                    try:
                        name, data, value_type = winreg.EnumValue(key, index)
                    except OSError:
                        # no more values
                        break
                    found[name] = (data, value_type)
        except FileNotFoundError:
            pass
        return found


def _string_value(values: dict[str, tuple[Any, int]], name: str, strip: str = " \v\t") -> str:
    value = values.get(name)
    if value is None or not isinstance(value[0], str):
        return ""
    return value[0].strip(strip)


def iter_uninstall_entries(registry: RegistryBackend, hive: str = "HKLM") -> Iterator[UninstallEntry]:
    """Yield every entry of the 64-bit and 32-bit Uninstall keys."""
    for root in UNINSTALL_KEYS:
        for key_name in registry.subkeys(hive, root):
            values = registry.values(hive, f"{root}\\{key_name}")
            yield UninstallEntry(
                key_name=key_name,
                uninstall_string=_string_value(values, "UninstallString"),
                install_location=_string_value(values, "InstallLocation", " \v\t'\""),
            )


def executable_from_command(command: str) -> str:
    """
    Return the program path at the start of a Windows command line.

    Handles both ``"C:\\Path With Spaces\\tool.exe" /args`` and unquoted
    ``C:\\Path\\tool.exe /args`` forms.
    """
    command = command.strip()
    if command.startswith('"'):
        closing = command.find('"', 1)
        return command[1:closing] if closing > 0 else command[1:]
    lowered = command.lower()
    end = lowered.find(".exe")
    if end >= 0:
        return command[: end + len(".exe")]
    return command.split(" ", 1)[0]


def find_uninstall_entry(
    registry: RegistryBackend,
    *,
    product_code: str,
    command_fragment: str,
) -> UninstallEntry | None:
    """
    Find the Uninstall entry for a product.

    The entry keyed by ``product_code`` wins. Only when no such key exists is
    the first entry whose ``UninstallString`` contains ``command_fragment``
    returned. Both comparisons ignore case.
    """
    wanted_code = product_code.lower()
    wanted_fragment = command_fragment.lower()
    fallback: UninstallEntry | None = None
    for entry in iter_uninstall_entries(registry):
        if entry.key_name.lower() == wanted_code:
            log.debug(f"Matched uninstall entry {entry.key_name} by product code")
            return entry
        if fallback is None and wanted_fragment in entry.uninstall_string.lower():
            fallback = entry
    if fallback is not None:
        log.debug(f"Matched uninstall entry {fallback.key_name} by uninstall command")
    return fallback
