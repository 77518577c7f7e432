# tests/engine/test_steps_system.py
import subprocess

import pytest

from common.exceptions import ConfigurationError, InsufficientPermissionError
from common.file_utils import read_managed_block
from engine.models import Principal, ServiceDefinition, StepStatus
from engine.steps.config_blocks import EnsureConfigBlock
from engine.steps.environment import SetPersistentEnvVar
from engine.steps.services import RegisterService


class TestSetPersistentEnvVar:
    def test_persists_and_then_satisfied(self, step_context, fake_platform):
        step = SetPersistentEnvVar("home", "ORACLE_HOME", "/u01/home")

        assert step.check(step_context) is False
        result = step.apply(step_context)

        assert result.status is StepStatus.SUCCEEDED
        assert fake_platform.environment[("machine", "ORACLE_HOME")] == "/u01/home"
        assert step.check(step_context) is True

    def test_different_value_is_not_satisfied(self, step_context, fake_platform):
        fake_platform.environment[("machine", "ORACLE_SID")] = "old"

        assert SetPersistentEnvVar("sid", "ORACLE_SID", "orcl").check(step_context) is False

    def test_user_scope_with_principal_name(self):
        step = SetPersistentEnvVar.from_params(
            "sid", var_name="ORACLE_SID", value="orcl", scope="user", principal="oracle"
        )

        assert step.principal == Principal(name="oracle")

    def test_unknown_scope(self):
        with pytest.raises(ConfigurationError):
            SetPersistentEnvVar("x", "X", "1", scope="global")


class TestRegisterService:
    def test_registers_once(self, step_context, fake_platform):
        definition = ServiceDefinition(name="oracle-rdbms", start_command="/u01/bin/dbstart /u01")
        step = RegisterService("svc", definition)

        assert step.check(step_context) is False
        step.apply(step_context)

        assert fake_platform.services["oracle-rdbms"] == definition
        assert step.check(step_context) is True

    def test_from_params_builds_definition(self):
        step = RegisterService.from_params(
            "svc",
            definition={
                "name": "oracle-rdbms",
                "start_command": "dbstart",
                "run_as": {"name": "oracle", "primary_group": "oinstall"},
            },
        )

        assert step.definition.run_as.name == "oracle"


class TestEnsureConfigBlock:
    def test_inserts_block_and_keeps_existing_content(self, step_context, tmp_path, mocker):
        mocker.patch("engine.steps.config_blocks.run_elevated_command")
        conf = tmp_path / "sysctl.conf"
        conf.write_text("vm.swappiness = 10\n", encoding="utf-8")
        step = EnsureConfigBlock("sysctl", conf, "kernel", ["fs.file-max = 6815744"])

        assert step.check(step_context) is False
        step.apply(step_context)

        text = conf.read_text(encoding="utf-8")
        assert text.startswith("vm.swappiness = 10\n")
        assert read_managed_block(conf, "kernel") == ["fs.file-max = 6815744"]
        assert step.check(step_context) is True
        assert list(tmp_path.glob("sysctl.conf.bak.*"))

    def test_replaces_existing_block(self, step_context, tmp_path):
        conf = tmp_path / "limits.conf"
        EnsureConfigBlock("limits", conf, "limits", ["old"]).apply(step_context)

        EnsureConfigBlock("limits", conf, "limits", ["new"]).apply(step_context)

        assert read_managed_block(conf, "limits") == ["new"]
        assert conf.read_text(encoding="utf-8").count("BEGIN") == 1

    def test_reload_command_runs(self, step_context, tmp_path, mocker):
        reload_mock = mocker.patch("engine.steps.config_blocks.run_elevated_command")
        conf = tmp_path / "sysctl.conf"

        EnsureConfigBlock("sysctl", conf, "kernel", ["a = 1"], reload_command=["sysctl", "-p"]).apply(step_context)

        assert reload_mock.call_args.args[0] == ["sysctl", "-p"]

    def test_reload_permission_failure(self, step_context, tmp_path, mocker):
        mocker.patch(
            "engine.steps.config_blocks.run_elevated_command",
            side_effect=subprocess.CalledProcessError(
                1, ["sysctl", "-p"], stderr="sysctl: permission denied on key"
            ),
        )

        with pytest.raises(InsufficientPermissionError):
            EnsureConfigBlock(
                "sysctl", tmp_path / "sysctl.conf", "kernel", ["a = 1"], reload_command=["sysctl", "-p"]
            ).apply(step_context)
