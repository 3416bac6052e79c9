"""
McClintock异常类型
"""

from typing import Optional


class McClintockError(Exception):
    """Base class for all orchestrator errors."""

    exit_code = 1


class UsageError(McClintockError):
    """Bad command line usage or input naming that breaks the naming contract."""

    exit_code = 2


class FilesystemError(McClintockError):
    """Output tree cannot be created or an input file cannot be read."""


class AnnotationError(McClintockError, ValueError):
    """Malformed GFF feature or family-mapping row."""


class ExternalToolFailure(McClintockError):
    """An external command exited non-zero (or could not be started)."""

    def __init__(self, outcome, message: Optional[str] = None):
        self.outcome = outcome
        if message is None:
            message = (
                f"{outcome.stage} failed with exit code {outcome.returncode}.\n"
                f"Command: {outcome.command_line}\n"
                f"stderr (last lines):\n{outcome.stderr_tail or '<empty>'}"
            )
        super().__init__(message)
