# tests/test_cli.py
import json

import pytest
import yaml

import install_database
from engine.steps import EnsureDirectory
from install_database import EXIT_CONFIG_ERROR, EXIT_FAILURE, EXIT_SUCCESS, main, parse_args


@pytest.fixture
def cli_env(tmp_path, monkeypatch, mocker, mock_logger, fake_platform):
    """Run the CLI from an empty directory with logging and the adapter faked."""
    monkeypatch.chdir(tmp_path)
    mocker.patch("install_database.setup_logging", return_value=mock_logger)
    mocker.patch("install_database.is_elevated", return_value=True)
    mocker.patch("install_database.select_platform_adapter", return_value=fake_platform)
    mocker.patch("install_database._install_signal_handlers")
    return fake_platform


@pytest.fixture
def plan_file(tmp_path):
    target = tmp_path / "work"
    plan = tmp_path / "plan.yaml"
    plan.write_text(
        yaml.safe_dump(
            {
                "steps": [
                    {"name": "Make work dir", "kind": "ensure_directory", "params": {"paths": [str(target)]}},
                    {
                        "name": "Write note",
                        "kind": "render_template",
                        "params": {"template_text": "sid={sid}\n", "output_path": str(target / "note.txt")},
                    },
                ]
            }
        )
    )
    return plan


def test_parse_args_subcommand_options():
    args = parse_args(["install", "--sid", "prod", "--timeout", "90", "--report-file", "r.json"])

    assert args.command == "install"
    assert args.sid == "prod"
    assert args.timeout == 90.0
    assert args.report_file == "r.json"


def test_no_command(capsys):
    assert main([]) == EXIT_CONFIG_ERROR
    assert "No command specified" in capsys.readouterr().err


def test_plan_lists_steps(cli_env, plan_file, capsys):
    assert main(["plan", "--plan", str(plan_file)]) == EXIT_SUCCESS

    out = capsys.readouterr().out
    assert "1. [ensure_directory] Make work dir" in out
    assert "2. [render_template] Write note" in out


def test_install_runs_plan_and_writes_report(cli_env, plan_file, tmp_path, capsys):
    report_file = tmp_path / "report.json"

    code = main(["install", "--plan", str(plan_file), "--sid", "prod", "--report-file", str(report_file)])

    assert code == EXIT_SUCCESS
    assert (tmp_path / "work" / "note.txt").read_text() == "sid=prod\n"
    report = json.loads(report_file.read_text())
    assert report["succeeded"] is True
    assert [r["status"] for r in report["results"]] == ["succeeded", "succeeded"]
    assert "Run succeeded" in capsys.readouterr().out


def test_check_changes_nothing(cli_env, plan_file, tmp_path):
    assert main(["check", "--plan", str(plan_file)]) == EXIT_SUCCESS
    assert not (tmp_path / "work").exists()


def test_failed_run_returns_failure(cli_env, tmp_path):
    plan = tmp_path / "plan.yaml"
    plan.write_text(
        yaml.safe_dump(
            {
                "steps": [
                    {
                        "name": "Extract media",
                        "kind": "extract_archive",
                        "params": {"archive_path": str(tmp_path / "missing.zip"), "dest_dir": str(tmp_path / "home")},
                    }
                ]
            }
        )
    )

    assert main(["install", "--plan", str(plan)]) == EXIT_FAILURE


def test_invalid_config_returns_config_error(cli_env, tmp_path):
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("database:\n  memory_percent: 500\n")

    assert main(["install", "--config", str(config_file)]) == EXIT_CONFIG_ERROR


def test_unknown_step_kind_returns_config_error(cli_env, tmp_path):
    plan = tmp_path / "plan.yaml"
    plan.write_text(yaml.safe_dump({"steps": [{"name": "x", "kind": "nope"}]}))

    assert main(["install", "--plan", str(plan)]) == EXIT_CONFIG_ERROR


def test_default_password_warning(cli_env, plan_file, mock_logger, mocker):
    mocker.patch.object(install_database, "is_elevated", return_value=False)

    main(["install", "--plan", str(plan_file)])

    warnings = " ".join(str(c.args[0]) for c in mock_logger.warning.call_args_list)
    assert "built-in defaults" in warnings
    assert "sudo" in warnings


def test_install_prints_connection_details(cli_env, tmp_path, mocker, capsys):
    mocker.patch(
        "install_database._load_steps",
        return_value=[EnsureDirectory("Make dir", [tmp_path / "home"])],
    )

    assert main(["install", "--sid", "prod"]) == EXIT_SUCCESS

    out = capsys.readouterr().out
    assert "SID: prod" in out
    assert "Connection String: localhost:1521/prod" in out
    assert "Remember to change the default passwords!" in out


def test_custom_plan_prints_no_connection_details(cli_env, plan_file, capsys):
    main(["install", "--plan", str(plan_file)])

    assert "Connection String" not in capsys.readouterr().out
