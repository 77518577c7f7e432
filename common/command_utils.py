# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing shell commands and logging their output.
"""

import logging
import os
import shutil
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, Dict, List, Optional, Sequence, Union

from common.exceptions import (
    NotFoundError,
    StepCancelledError,
    StepTimeoutError,
)
from provision import config as static_config
from provision.config import SYMBOLS_DEFAULT
from provision.config_models import InstallConfig

module_logger = logging.getLogger(__name__)


def _symbols(config: Optional[InstallConfig]) -> Dict[str, str]:
    return config.symbols if config and config.symbols else SYMBOLS_DEFAULT


def log_provision(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    config: Optional[InstallConfig] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a provisioning message at the given level.

    Args:
        message (str): The log message to be recorded.
        level (str): One of "debug", "info", "success", "warning", "error"
            or "critical". "success" is logged at INFO. Defaults to "info".
        current_logger (Optional[logging.Logger]): Logger to use. Falls back
            to the module logger.
        config (Optional[InstallConfig]): Installation settings; accepted for
            symmetry with the other helpers.
        exc_info (bool): Attach the current exception's traceback.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def is_elevated() -> bool:
    """Return True when running as root (POSIX) or when euid is unknown."""
    geteuid = getattr(os, "geteuid", None)
    if geteuid is None:
        # Windows: elevation is the operator's responsibility.
        return True
    return geteuid() == 0


def _get_elevated_command_prefix() -> List[str]:
    """
    Returns ``["sudo"]`` when the process lacks root privileges, otherwise an
    empty list.
    """
    return [] if is_elevated() else ["sudo"]


def format_command(command: Union[Sequence[str], str]) -> str:
    if isinstance(command, str):
        return command
    return subprocess.list2cmdline(list(command))


def run_command(
    command: Union[List[str], str],
    config: Optional[InstallConfig],
    check: bool = True,
    shell: bool = False,
    capture_output: bool = False,
    text: bool = True,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    log_input: bool = False,
) -> subprocess.CompletedProcess:
    """
    Executes a system command and logs the process details and results.

    Args:
        command: The command to execute, as a list (preferred) or a string.
            With ``shell=True`` a list is joined into a single string.
        config: Installation settings, used for log symbols.
        check: Raise ``CalledProcessError`` on a non-zero exit code.
        shell: Run the command through the shell.
        capture_output: Capture stdout and stderr.
        text: Decode output streams as text.
        cmd_input: Data passed to the command's standard input.
        current_logger: Logger to use; falls back to the module logger.
        cwd: Working directory for the command.
        env: Environment for the command; inherits the parent's if None.
        log_input: Log ``cmd_input`` at debug level. Leave False for secrets.

    Returns:
        subprocess.CompletedProcess: The completed process.

    Raises:
        subprocess.CalledProcessError: Non-zero exit code and ``check=True``.
        FileNotFoundError: The executable could not be found.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = _symbols(config)
    command_to_run: Union[List[str], str]

    if shell:
        command_to_run = (
            " ".join(command) if isinstance(command, list) else command
        )
    elif isinstance(command, str):
        log_provision(
            f"{symbols.get('warning', '!')} Running string command '{command}' without shell=True. Consider list format.",
            "warning",
            effective_logger,
            config,
        )
        command_to_run = command.split()
    else:
        command_to_run = command
    command_to_log_str = format_command(command_to_run)

    log_provision(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}".rstrip(),
        "info",
        effective_logger,
        config,
    )
    if cmd_input is not None and log_input:
        log_provision(f"   stdin: {cmd_input}", "debug", effective_logger, config)
    try:
        result = subprocess.run(
            command_to_run,
            check=check,
            shell=shell,
            capture_output=capture_output,
            text=text,
            input=cmd_input,
            cwd=cwd,
            env=env,
        )
        if capture_output:
            if result.stdout and result.stdout.strip():
                log_provision(
                    f"   stdout: {result.stdout.strip()}",
                    "debug",
                    effective_logger,
                    config,
                )
            if result.stderr and result.stderr.strip():
                log_provision(
                    f"   stderr: {result.stderr.strip()}",
                    "debug",
                    effective_logger,
                    config,
                )
        return result
    except subprocess.CalledProcessError as e:
        log_provision(
            f"{symbols.get('error', '❌')} Command `{format_command(e.cmd)}` failed (rc {e.returncode}).",
            "error",
            effective_logger,
            config,
        )
        if e.stdout and hasattr(e.stdout, "strip") and e.stdout.strip():
            log_provision(
                f"   stdout: {e.stdout.strip()}", "error", effective_logger, config
            )
        if e.stderr and hasattr(e.stderr, "strip") and e.stderr.strip():
            log_provision(
                f"   stderr: {e.stderr.strip()}", "error", effective_logger, config
            )
        raise
    except FileNotFoundError as e:
        log_provision(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "error",
            effective_logger,
            config,
        )
        raise


def run_elevated_command(
    command: List[str],
    config: Optional[InstallConfig],
    check: bool = True,
    capture_output: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a command with elevated permissions, prefixing ``sudo`` when the
    current process is not already privileged.
    """
    elevated_command_list = _get_elevated_command_prefix() + list(command)
    return run_command(
        elevated_command_list,
        config,
        check=check,
        shell=False,
        capture_output=capture_output,
        text=True,
        cmd_input=cmd_input,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
    )


def command_exists(command_name: str) -> bool:
    """Check if a command exists in the system's PATH."""
    return shutil.which(command_name) is not None


def _stop_process(
    process: subprocess.Popen,
    grace: float,
    logger: logging.Logger,
) -> None:
    process.terminate()
    try:
        process.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        logger.warning(
            f"Process {process.pid} ignored terminate(); killing it."
        )
        process.kill()
        process.wait()


def run_supervised_command(
    command: List[str],
    config: Optional[InstallConfig],
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    log_file: Optional[Path] = None,
    poll_interval: float = static_config.PROCESS_POLL_INTERVAL,
    terminate_grace: float = static_config.PROCESS_TERMINATE_GRACE,
) -> int:
    """
    Starts a long-running command and blocks until it exits.

    Unlike ``run_command`` the child is watched while it runs: when
    ``timeout`` elapses or ``cancel_event`` is set the child is terminated
    (then killed after ``terminate_grace`` seconds).

    Returns:
        int: The child's exit code.

    Raises:
        NotFoundError: The executable does not exist.
        StepTimeoutError: The timeout elapsed.
        StepCancelledError: The cancel event was set.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = _symbols(config)
    command_str = format_command(command)

    log_provision(
        f"{symbols.get('gear', '⚙️')} Starting: {command_str} {f'(in {cwd})' if cwd else ''}".rstrip(),
        "info",
        effective_logger,
        config,
    )

    output: Optional[IO[bytes]] = None
    try:
        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            output = open(log_file, "ab")
        try:
            process = subprocess.Popen(
                command,
                cwd=cwd,
                env=env,
                stdout=output,
                stderr=subprocess.STDOUT if output else None,
            )
        except FileNotFoundError as e:
            raise NotFoundError(
                f"Executable not found: {e.filename or command[0]}"
            ) from e

        deadline = time.monotonic() + timeout if timeout else None
        while True:
            try:
                return_code = process.wait(timeout=poll_interval)
                break
            except subprocess.TimeoutExpired:
                pass
            if cancel_event is not None and cancel_event.is_set():
                log_provision(
                    f"{symbols.get('warning', '!')} Cancellation requested; terminating `{command_str}`.",
                    "warning",
                    effective_logger,
                    config,
                )
                _stop_process(process, terminate_grace, effective_logger)
                raise StepCancelledError(
                    f"Command '{command_str}' was cancelled."
                )
            if deadline is not None and time.monotonic() >= deadline:
                log_provision(
                    f"{symbols.get('error', '❌')} `{command_str}` exceeded {timeout:g}s; terminating.",
                    "error",
                    effective_logger,
                    config,
                )
                _stop_process(process, terminate_grace, effective_logger)
                raise StepTimeoutError(command_str, timeout)
    finally:
        if output is not None:
            output.close()

    level = "info" if return_code == 0 else "error"
    log_provision(
        f"   `{command_str}` exited with rc {return_code}.",
        level,
        effective_logger,
        config,
    )
    return return_code
