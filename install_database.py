#!/usr/bin/env python3
"""
Entry point for the unattended database installer.

Subcommands:
    install  Run the standard installation plan (or a YAML plan).
    check    Dry run: evaluate every check and report what would change.
    plan     List the steps that would be executed.

Exit codes: 0 on success, 1 when a step failed or the run was cancelled,
2 for configuration errors.
"""

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from common.command_utils import is_elevated, log_provision
from common.exceptions import ConfigurationError
from common.logging_config import setup_logging
from engine.base_step import BaseStep
from engine.platforms import select_platform_adapter
from engine.platforms.base import PlatformAdapter
from engine.runner import StepRunner
from provision import config as static_config
from provision.config_loader import load_install_config
from provision.config_models import InstallConfig
from provision.install_plan import build_install_plan
from provision.plan_loader import load_plan

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, sys.argv[1:] is used.
    """
    common_parser = argparse.ArgumentParser(add_help=False)
    common_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    common_parser.add_argument(
        "--config",
        dest="config_file",
        default=None,
        help=f"YAML configuration file (default: ./{static_config.DEFAULT_CONFIG_FILE} if present).",
    )
    common_parser.add_argument(
        "--plan",
        default=None,
        help="YAML plan file to run instead of the standard installation plan.",
    )
    common_parser.add_argument(
        "--platform",
        choices=["linux", "windows"],
        default=None,
        help="Force the platform adapter instead of detecting the running OS.",
    )
    common_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Timeout in seconds for each installer sub-process.",
    )
    common_parser.add_argument(
        "--install-source",
        default=None,
        help="Directory or http(s) URL holding the installation archive.",
    )
    common_parser.add_argument("--sid", default=None, help="Database SID.")
    common_parser.add_argument(
        "--log-file",
        default=None,
        help="Also write JSON-lines logs to this file.",
    )
    common_parser.add_argument(
        "--log-prefix", default=None, help="Prefix for console log lines."
    )
    common_parser.add_argument(
        "--dev-override-unsafe-password",
        action="store_true",
        help="DEV FLAG: accept the built-in default passwords and skip the password policy.",
    )

    parser = argparse.ArgumentParser(
        description="Unattended database installer for Linux and Windows hosts."
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    install_parser = subparsers.add_parser(
        "install", help="Run the installation plan", parents=[common_parser]
    )
    install_parser.add_argument(
        "--report-file",
        default=None,
        help="Write the run report as JSON to this file.",
    )
    check_parser = subparsers.add_parser(
        "check",
        help="Evaluate every step's check without changing anything",
        parents=[common_parser],
    )
    check_parser.add_argument(
        "--report-file",
        default=None,
        help="Write the dry-run report as JSON to this file.",
    )
    subparsers.add_parser(
        "plan", help="List the steps of the plan", parents=[common_parser]
    )

    return parser.parse_args(args)


def _load_steps(
    parsed_args: argparse.Namespace,
    config: InstallConfig,
    platform: PlatformAdapter,
    logger: logging.Logger,
) -> List[BaseStep]:
    if parsed_args.plan:
        return load_plan(parsed_args.plan, config, logger)
    return build_install_plan(config, platform, logger)


def _warn_about_defaults(config: InstallConfig, logger: logging.Logger) -> None:
    symbols = config.symbols
    if config.uses_default_passwords() and not config.dev_override_unsafe_password:
        log_provision(
            f"{symbols.get('warning', '!')} One or more passwords are still the built-in defaults. "
            "Override them in the config file or DBPROV_* environment variables.",
            "warning",
            logger,
            config,
        )
    if not is_elevated():
        log_provision(
            f"{symbols.get('warning', '!')} Not running as root; privileged steps will use sudo.",
            "warning",
            logger,
            config,
        )


def _install_signal_handlers(cancel_event: threading.Event, logger: logging.Logger) -> None:
    def _handle(signum, _frame):
        logger.warning(f"Received signal {signum}; cancelling after the current step.")
        cancel_event.set()

    for sig_name in ("SIGINT", "SIGTERM"):
        sig = getattr(signal, sig_name, None)
        if sig is not None:
            signal.signal(sig, _handle)


def _print_plan(steps: List[BaseStep]) -> None:
    for index, step in enumerate(steps, start=1):
        description = step.describe()
        check = "" if step.has_check else " (always runs)"
        print(f"{index:2d}. [{description['kind']}] {step.name}{check}")


def _print_connection_summary(config: InstallConfig) -> None:
    db = config.database
    print("Database Information:")
    print(f"  SID: {db.sid}")
    print(f"  PDB: {db.pdb_name}")
    print(f"  Oracle Home: {config.home_path}")
    print(f"  Connection String: {config.hostname}:{db.listener_port}/{db.sid}")
    if config.uses_default_passwords():
        print("Remember to change the default passwords!")


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the installer.

    Args:
        args: Command-line arguments. If None, sys.argv[1:] is used.

    Returns:
        Exit code (0 for success, 1 for a failed or cancelled run, 2 for
        configuration errors).
    """
    parsed_args = parse_args(args)
    if not parsed_args.command:
        print("No command specified. Use --help for usage information.", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger = setup_logging(
        log_level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        log_file_path=parsed_args.log_file,
        log_prefix=parsed_args.log_prefix,
    )

    try:
        config = load_install_config(
            parsed_args, parsed_args.config_file, current_logger=logger
        )
        platform = select_platform_adapter(parsed_args.platform, config, logger)
        steps = _load_steps(parsed_args, config, platform, logger)

        if parsed_args.command == "plan":
            _print_plan(steps)
            return EXIT_SUCCESS

        cancel_event = threading.Event()
        runner = StepRunner(platform, config, logger, cancel_event=cancel_event)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    _install_signal_handlers(cancel_event, logger)
    dry_run = parsed_args.command == "check"
    if not dry_run:
        _warn_about_defaults(config, logger)

    report = runner.run(steps, dry_run=dry_run)

    if parsed_args.report_file:
        report_path = Path(parsed_args.report_file)
        try:
            report.write_json(report_path)
            logger.info(f"Report written to {report_path}")
        except OSError as e:
            logger.error(f"Could not write report to {report_path}: {e}")

    print(report.summary())
    if report.succeeded and not dry_run and not parsed_args.plan:
        _print_connection_summary(config)
    if parsed_args.verbose:
        print(json.dumps(report.counts()))
    return EXIT_SUCCESS if report.succeeded else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
