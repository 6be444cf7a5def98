"""Temporarily redirect the default user's Local AppData folder to a writable scratch path."""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType
from typing import Any

from sfinstaller.errors import ScratchFolderError
from sfinstaller.system.registry import REG_EXPAND_SZ, RegistryBackend

log = logging.getLogger(__name__)

SHELL_FOLDERS_HIVE = "HKU"
SHELL_FOLDERS_KEY = r".DEFAULT\Software\Microsoft\Windows\CurrentVersion\Explorer\User Shell Folders"
LOCAL_APPDATA_VALUE = "Local AppData"
DEFAULT_LOCAL_APPDATA = r"%USERPROFILE%\AppData\Local"


class ScratchLocalAppData:
    """
    Context manager that points ``Local AppData`` of the default profile at a scratch folder.

    Installers that run as a substituted identity resolve their local data
    folder through this value. The original literal value is captured on
    entry and written back on exit, whether or not the body raised.
    Restoring more than once is harmless.
    """

    def __init__(self, registry: RegistryBackend, scratch_dir: Path) -> None:
        self.registry = registry
        self.scratch_dir = scratch_dir
        self._original: tuple[Any, int] | None = None
        self._patched = False

    def __enter__(self) -> "ScratchLocalAppData":
        self.apply()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self.restore()
        except ScratchFolderError:
            if exc is None:
                raise
            # Keep the error that aborted the run; the failed restore is still logged.
            log.exception("Failed to restore Local AppData after an aborted run")

    def apply(self) -> None:
        """Capture the current value and overwrite it with the scratch folder."""
        try:
            self._original = self.registry.read_value(
                SHELL_FOLDERS_HIVE, SHELL_FOLDERS_KEY, LOCAL_APPDATA_VALUE
            )
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            log.info(f"Redirecting default profile Local AppData to {self.scratch_dir}")
            self._patched = True
            self.registry.write_value(
                SHELL_FOLDERS_HIVE,
                SHELL_FOLDERS_KEY,
                LOCAL_APPDATA_VALUE,
                str(self.scratch_dir),
                REG_EXPAND_SZ,
            )
        except OSError as exc:
            raise ScratchFolderError(f"Failed to redirect Local AppData: {exc}") from exc

    def restore(self) -> None:
        """Write the captured value back, or the Windows default if none was captured."""
        if not self._patched:
            return
        data, value_type = self._original or (DEFAULT_LOCAL_APPDATA, REG_EXPAND_SZ)
        log.info(f"Restoring default profile Local AppData to {data}")
        try:
            self.registry.write_value(
                SHELL_FOLDERS_HIVE, SHELL_FOLDERS_KEY, LOCAL_APPDATA_VALUE, data, value_type
            )
        except OSError as exc:
            raise ScratchFolderError(f"Failed to restore Local AppData: {exc}") from exc
        self._patched = False
