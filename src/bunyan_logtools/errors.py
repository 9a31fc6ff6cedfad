"""Exception hierarchy shared by the rotator and the pruner.

Library code raises these; only the command-line layer turns them into
exit codes.  Nothing here is retried: every error aborts the invocation.
"""
from __future__ import annotations

from pathlib import Path


class LogToolsError(Exception):
    """Root of all errors raised by bunyan-logtools."""


class ConfigurationError(LogToolsError, ValueError):
    """Raised for bad option values before any work is done."""


class RotationError(LogToolsError):
    """Raised when an I/O step of a rotation fails.

    Attributes
    ----------
    path:
        The file the failing operation was applied to.
    operation:
        Short verb describing the step (``open``, ``read``, ``lock`` ...).
    """

    def __init__(
        self,
        path: str | Path,
        operation: str,
        reason: str | BaseException | None = None,
    ) -> None:
        self.path = str(path)
        self.operation = operation
        message = f'"{self.path}" {operation}'
        if isinstance(reason, OSError) and reason.strerror:
            message = f"{message}: {reason.strerror}"
        elif reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)


class CompressionError(RotationError):
    """Raised when the DEFLATE encoder reports an internal failure."""


class DigestError(LogToolsError):
    """Raised when a content digest is misused or cannot be computed."""
