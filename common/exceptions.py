# common/exceptions.py
# -*- coding: utf-8 -*-
"""
Exception taxonomy shared by the provisioning steps, platform adapters and
the runner.

Every failure raised inside a step's ``apply`` ends up attached to the
``StepResult`` of that step, so each class carries a short, human-readable
message and, where useful, the structured detail that produced it.
"""

from typing import Iterable, Optional


class ProvisionError(Exception):
    """Base class for all provisioning errors."""


class ValidationError(ProvisionError):
    """Raised when an input parameter is rejected (e.g. password policy)."""


class InsufficientPermissionError(ProvisionError, PermissionError):
    """Raised when the caller lacks the rights for an OS mutation."""


class NotFoundError(ProvisionError, FileNotFoundError):
    """Raised when a prerequisite file, path or executable is missing."""


class FilesystemError(ProvisionError, OSError):
    """Raised when a filesystem operation fails."""


class TemplateError(ProvisionError):
    """Raised when a template cannot be fully rendered."""

    def __init__(
        self, message: str, missing: Optional[Iterable[str]] = None
    ):
        self.missing = sorted(missing) if missing else []
        super().__init__(message)


class ConfigurationError(ProvisionError):
    """Raised for platform/adapter mismatches and malformed configuration."""


class StepTimeoutError(ProvisionError, TimeoutError):
    """Raised when an external process exceeds its allotted time."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(
            f"Command '{command}' did not finish within {timeout:g}s and was terminated."
        )


class StepCancelledError(ProvisionError):
    """Raised when a run is cancelled while a step is in progress."""


def permission_denied_in(text: Optional[str]) -> bool:
    """Return True if command output looks like an access-denied failure."""
    if not text:
        return False
    lowered = text.lower()
    return any(
        marker in lowered
        for marker in (
            "permission denied",
            "operation not permitted",
            "access is denied",
            "only root",
            "must be run as root",
            "cannot lock /etc/passwd",
        )
    )
