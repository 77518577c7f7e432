# tests/conftest.py
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from common.system_utils import get_os_name
from engine.context import StepContext
from engine.models import Principal, ServiceDefinition
from engine.platforms.base import PlatformAdapter
from provision.config_models import InstallConfig

TEST_SYMBOLS = {
    "success": "✅",
    "error": "❌",
    "warning": "!",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "skip": "⏭️",
}


class FakePlatformAdapter(PlatformAdapter):
    """In-memory platform adapter serving whatever OS the tests run on."""

    os_name = get_os_name()

    def __init__(self, config=None, logger=None):
        super().__init__(config, logger)
        self.principals: Dict[str, Principal] = {}
        self.environment: Dict[Tuple[str, str], str] = {}
        self.services: Dict[str, ServiceDefinition] = {}
        self.ownership_calls: List[tuple] = []
        self.fail_create_principal: Optional[Exception] = None

    def principal_exists(self, name: str) -> bool:
        return name in self.principals

    def create_principal(self, principal: Principal) -> None:
        if self.fail_create_principal is not None:
            raise self.fail_create_principal
        self.principals[principal.name] = principal

    def set_owner_and_mode(self, path, owner, group=None, rights=None, recursive=False):
        self.ownership_calls.append((Path(path), owner, group, rights, recursive))

    def read_persistent_environment_variable(self, name, scope, principal=None):
        return self.environment.get((scope, name))

    def persist_environment_variable(self, name, value, scope, principal=None):
        self.environment[(scope, name)] = value

    def is_service_registered(self, name: str) -> bool:
        return name in self.services

    def install_service_definition(self, definition: ServiceDefinition) -> None:
        self.services[definition.name] = definition

    def wrap_command_for_principal(self, command, principal, env=None):
        return ["run-as", principal.name, *command]


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def install_config(tmp_path) -> InstallConfig:
    """InstallConfig pointing every path into a temporary directory."""
    base = tmp_path / "opt" / "oracle"
    return InstallConfig(
        base_path=base,
        home_path=base / "product" / "19c" / "dbhome_1",
        inventory_path=tmp_path / "opt" / "oraInventory",
        install_source=str(tmp_path / "media"),
        archive_filename="db_home.zip",
        symbols=TEST_SYMBOLS,
        account={"user": "oracle", "password": "Str0ngPassw0rd"},
        tuning={"kernel_parameters": False, "user_limits": False, "tmpfs_size": None, "swap": False},
    )


@pytest.fixture
def fake_platform(install_config, mock_logger) -> FakePlatformAdapter:
    return FakePlatformAdapter(install_config, mock_logger)


@pytest.fixture
def step_context(install_config, fake_platform, mock_logger) -> StepContext:
    return StepContext(
        config=install_config,
        platform=fake_platform,
        logger=mock_logger,
        cancel_event=threading.Event(),
    )
