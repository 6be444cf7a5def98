"""Deterministic process exit-code mapping for the CLI."""

from sfinstaller.errors import ConfigurationError, ExternalFailureError

SUCCESS = 0
USER_ERROR = 2
VALIDATION_ERROR = 3
EXTERNAL_FAILURE = 4
INTERNAL_BUG = 5


def exit_code_for(error: BaseException) -> int:
    """Map a fatal error onto a non-zero exit code."""
    if isinstance(error, ConfigurationError):
        return VALIDATION_ERROR
    if isinstance(error, ExternalFailureError):
        return EXTERNAL_FAILURE
    return INTERNAL_BUG
