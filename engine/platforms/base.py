"""
Abstract base class for platform-specific OS primitives.

Built-in steps never call OS facilities directly; they go through the
adapter selected once at startup, so all Windows/Linux branching lives
behind this boundary.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from common.exceptions import (
    InsufficientPermissionError,
    ProvisionError,
    permission_denied_in,
)
from engine.models import Principal, ServiceDefinition
from provision.config_models import InstallConfig


class PlatformAdapter(ABC):
    """
    OS capability set used by the built-in steps.

    Subclasses implement principal management, ownership/permission changes,
    persistent environment variables, service registration and running a
    command as another principal.
    """

    #: Value of ``common.system_utils.get_os_name()`` this adapter serves.
    os_name: str = ""

    def __init__(
        self,
        config: Optional[InstallConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def matches_current_os(self, current_os: str) -> bool:
        return current_os == self.os_name

    @abstractmethod
    def principal_exists(self, name: str) -> bool:
        """Return True if an account called ``name`` exists."""

    @abstractmethod
    def create_principal(self, principal: Principal) -> None:
        """Create the account, its missing groups and its memberships."""

    @abstractmethod
    def set_owner_and_mode(
        self,
        path: Path,
        owner: Optional[str],
        group: Optional[str] = None,
        rights: Optional[str] = None,
        recursive: bool = False,
    ) -> None:
        """
        Assign ownership and access rights on ``path``.

        ``rights`` is platform-specific: an octal mode on POSIX, an icacls
        permission on Windows.
        """

    @abstractmethod
    def read_persistent_environment_variable(
        self, name: str, scope: str, principal: Optional[Principal] = None
    ) -> Optional[str]:
        """Return the persisted value of ``name`` in ``scope`` or None."""

    @abstractmethod
    def persist_environment_variable(
        self,
        name: str,
        value: str,
        scope: str,
        principal: Optional[Principal] = None,
    ) -> None:
        """Write ``name=value`` to the persistent environment store."""

    @abstractmethod
    def is_service_registered(self, name: str) -> bool:
        """Return True if a service called ``name`` is installed and enabled."""

    @abstractmethod
    def install_service_definition(self, definition: ServiceDefinition) -> None:
        """Install the service and enable it for automatic start."""

    @abstractmethod
    def wrap_command_for_principal(
        self,
        command: List[str],
        principal: Principal,
        env: Optional[Dict[str, str]] = None,
    ) -> List[str]:
        """Return an argv that runs ``command`` as ``principal``."""

    @staticmethod
    def raise_for_command_failure(
        error: subprocess.CalledProcessError,
        action: str,
        default: type = ProvisionError,
    ) -> None:
        """
        Re-raise a failed command as a provisioning error. Output mentioning
        denied access becomes ``InsufficientPermissionError``.
        """
        output = " ".join(
            str(part) for part in (error.stderr, error.stdout) if part
        )
        message = f"{action} failed (rc {error.returncode})"
        if output.strip():
            message += f": {output.strip()}"
        if permission_denied_in(output):
            raise InsufficientPermissionError(message) from error
        raise default(message) from error
