"""Generic helpers for platform probing and command-line assembly."""

import ctypes
import platform
import sys


def is_windows() -> bool:
    """
    Determine whether the current operating system is Windows.

    Returns:
        bool: True if the current platform is Windows, False otherwise.
    """
    return sys.platform == "win32"


def is_elevated() -> bool:
    """
    Determine whether the current process runs with administrator rights.

    Returns:
        bool: True for an elevated Windows process, False otherwise.
    """
    if not is_windows():
        return False
    return bool(ctypes.windll.shell32.IsUserAnAdmin())


def processor_architecture() -> str:
    """
    Return the download variant matching the processor architecture.

    Returns:
        str: ``"amd64"`` on 64-bit x86 machines, ``"x86"`` otherwise.
    """
    machine = platform.machine().lower()
    if machine in ("amd64", "x86_64"):
        return "amd64"
    return "x86"


def quote_argument(value: str) -> str:
    """Wrap a path in double quotes for a Windows command line."""
    return f'"{value}"'


def is_blank_output_line(line: str) -> bool:
    """Return whether an output line carries nothing but dots and spaces."""
    return not line.strip(". \r\n")
