# tests/provision/test_plan_loader.py
import pytest
import yaml

from common.exceptions import ConfigurationError
from engine.steps import EnsureDirectory, EnsureUser, RenderTemplate
from provision.plan_loader import build_steps, load_plan


def _write_plan(path, steps):
    path.write_text(yaml.safe_dump({"steps": steps}), encoding="utf-8")
    return path


class TestBuildSteps:
    def test_string_params_are_rendered(self, install_config):
        steps = build_steps(
            [
                {
                    "name": "Create user",
                    "kind": "ensure_user",
                    "params": {"principal": {"name": "{install_user}", "primary_group": "{install_group}"}},
                },
                {
                    "name": "Create admin dir",
                    "kind": "ensure_directory",
                    "params": {"paths": ["{base_path}/admin/{sid}"], "mode": "750"},
                },
            ],
            install_config,
        )

        assert isinstance(steps[0], EnsureUser)
        assert steps[0].principal.name == "oracle"
        assert steps[0].principal.primary_group == "oinstall"
        assert isinstance(steps[1], EnsureDirectory)
        assert steps[1].paths[0] == install_config.base_path / "admin" / "orcl"
        assert steps[1].mode == 0o750

    def test_template_text_is_left_for_the_step(self, install_config, tmp_path):
        steps = build_steps(
            [
                {
                    "name": "Write listener.ora",
                    "kind": "render_template",
                    "params": {
                        "template_text": "PORT={listener_port} HOST={host}\n",
                        "bindings": {"host": "db01"},
                        "output_path": str(tmp_path / "listener.ora"),
                    },
                }
            ],
            install_config,
        )

        step = steps[0]
        assert isinstance(step, RenderTemplate)
        assert step.template_text == "PORT={listener_port} HOST={host}\n"
        assert step.render() == "PORT=1521 HOST=db01\n"

    def test_unknown_kind(self, install_config):
        with pytest.raises(ConfigurationError, match="Unknown step kind"):
            build_steps([{"name": "x", "kind": "format_disk"}], install_config)

    def test_duplicate_names(self, install_config):
        entry = {"name": "Same", "kind": "ensure_directory", "params": {"paths": ["/tmp/a"]}}

        with pytest.raises(ConfigurationError, match="Duplicate"):
            build_steps([entry, dict(entry)], install_config)

    def test_unresolved_placeholder(self, install_config):
        with pytest.raises(ConfigurationError, match="no_such_value"):
            build_steps(
                [{"name": "x", "kind": "ensure_directory", "params": {"paths": ["{no_such_value}"]}}],
                install_config,
            )

    def test_invalid_params(self, install_config):
        with pytest.raises(ConfigurationError, match="Invalid parameters"):
            build_steps(
                [{"name": "x", "kind": "ensure_directory", "params": {"bogus": 1}}],
                install_config,
            )

    @pytest.mark.parametrize("entry", ["just-a-string", {"name": "no kind"}])
    def test_malformed_entries(self, install_config, entry):
        with pytest.raises(ConfigurationError):
            build_steps([entry], install_config)


class TestLoadPlan:
    def test_template_file_is_relative_to_plan(self, install_config, tmp_path, mock_logger):
        (tmp_path / "templates").mkdir()
        (tmp_path / "templates" / "tnsnames.ora").write_text("{sid} = (PORT={listener_port})\n")
        plan = _write_plan(
            tmp_path / "plan.yaml",
            [
                {
                    "name": "Write tnsnames.ora",
                    "kind": "render_template",
                    "params": {
                        "template_file": "templates/tnsnames.ora",
                        "output_path": "{home_path}/network/admin/tnsnames.ora",
                    },
                }
            ],
        )

        steps = load_plan(plan, install_config, mock_logger)

        assert steps[0].render() == "orcl = (PORT=1521)\n"
        assert steps[0].output_path == install_config.home_path / "network" / "admin" / "tnsnames.ora"

    def test_missing_template_file(self, install_config, tmp_path):
        plan = _write_plan(
            tmp_path / "plan.yaml",
            [
                {
                    "name": "Write file",
                    "kind": "render_template",
                    "params": {"template_file": "missing.tpl", "output_path": "/tmp/out"},
                }
            ],
        )

        with pytest.raises(ConfigurationError, match="Cannot read template file"):
            load_plan(plan, install_config)

    def test_plan_without_steps(self, install_config, tmp_path):
        plan = tmp_path / "plan.yaml"
        plan.write_text("description: empty\n")

        with pytest.raises(ConfigurationError, match="no 'steps' list"):
            load_plan(plan, install_config)

    def test_missing_plan_file(self, install_config, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_plan(tmp_path / "nope.yaml", install_config)
