# tests/engine/test_steps_templates.py
import os

import pytest

from common.exceptions import TemplateError
from engine.models import StepStatus
from engine.steps.templates import RenderTemplate

posix_only = pytest.mark.skipif(os.name != "posix", reason="POSIX file modes")


class TestRenderTemplate:
    def test_renders_and_writes(self, step_context, tmp_path):
        output = tmp_path / "rsp" / "install.rsp"
        step = RenderTemplate("rsp", "ORACLE_HOME={home}\n", {"home": "/u01/home"}, output)

        assert step.check(step_context) is False
        result = step.apply(step_context)

        assert result.status is StepStatus.SUCCEEDED
        assert output.read_text(encoding="utf-8") == "ORACLE_HOME=/u01/home\n"
        assert step.check(step_context) is True

    def test_changed_content_is_not_satisfied(self, step_context, tmp_path):
        output = tmp_path / "install.rsp"
        output.write_text("ORACLE_HOME=/old\n", encoding="utf-8")
        step = RenderTemplate("rsp", "ORACLE_HOME={home}\n", {"home": "/new"}, output)

        assert step.check(step_context) is False

    def test_missing_binding_raises_and_writes_nothing(self, step_context, tmp_path):
        output = tmp_path / "dbca.rsp"
        step = RenderTemplate("rsp", "sid={sid}\npdb={pdb_name}\n", {"sid": "orcl"}, output)

        with pytest.raises(TemplateError) as excinfo:
            step.apply(step_context)

        assert excinfo.value.missing == ["pdb_name"]
        assert not output.exists()

    @posix_only
    def test_secret_placeholder_makes_file_private(self, step_context, tmp_path):
        output = tmp_path / "dbca.rsp"
        step = RenderTemplate("rsp", "sysPassword={sys_password}\n", {"sys_password": "S3cret!"}, output)

        step.apply(step_context)

        assert os.stat(output).st_mode & 0o777 == 0o600

    @posix_only
    def test_explicit_secret_flag(self, step_context, tmp_path):
        output = tmp_path / "plain.txt"

        RenderTemplate("rsp", "x={x}", {"x": 1}, output, secret=True).apply(step_context)

        assert os.stat(output).st_mode & 0o777 == 0o600

    @posix_only
    def test_plain_file_mode(self, step_context, tmp_path):
        output = tmp_path / "plain.txt"

        RenderTemplate("rsp", "x={x}", {"x": 1}, output).apply(step_context)

        assert os.stat(output).st_mode & 0o777 == 0o644

    def test_owner_is_applied(self, step_context, fake_platform, tmp_path):
        output = tmp_path / "install.rsp"

        RenderTemplate("rsp", "x", {}, output, owner="oracle", group="oinstall").apply(step_context)

        assert fake_platform.ownership_calls == [(output, "oracle", "oinstall", None, False)]
