# provision/install_plan.py
# -*- coding: utf-8 -*-
"""
The standard step sequence for an unattended database installation.

The order mirrors a manual install: account, directories, software
archive, host tuning, software-only install, root scripts, database
creation, environment, listener and finally the auto-start service. The
archive is extracted before anything else touches the host so a missing
archive stops the run after three steps.
"""

import logging
from pathlib import Path, PureWindowsPath
from typing import List, Optional

from common.system_utils import get_total_memory_mb
from engine.base_step import BaseStep
from engine.models import Principal, ServiceDefinition
from engine.platforms.base import PlatformAdapter
from engine.steps import (
    EnsureConfigBlock,
    EnsureDirectory,
    EnsureSwapFile,
    EnsureUser,
    ExtractArchive,
    RegisterService,
    RenderTemplate,
    RunExternalProcess,
    SetPermissions,
    SetPersistentEnvVar,
)
from provision import config as static_config
from provision.config_models import InstallConfig
from provision.templates import (
    DBCA_RESPONSE_FILE,
    DBCA_RSP_TEMPLATE,
    INSTALL_RESPONSE_FILE,
    INSTALL_RSP_TEMPLATE,
    database_environment,
    service_environment,
)

module_logger = logging.getLogger(__name__)

INSTALLER_MARKER_LINUX = "runInstaller"
INSTALLER_MARKER_WINDOWS = "setup.exe"


def install_principal(config: InstallConfig) -> Principal:
    """The software owner described by ``config.account``."""
    account = config.account
    return Principal(
        name=account.user,
        password=account.password,
        primary_group=account.primary_group,
        groups=account.groups,
        shell=account.shell,
    )


def _common_prefix(
    config: InstallConfig, principal: Principal, installer_marker: str
) -> List[BaseStep]:
    return [
        EnsureUser("Create install user", principal),
        EnsureDirectory(
            "Create installation directories",
            [config.base_path, config.home_path, config.inventory_path],
            mode=0o775,
        ),
        ExtractArchive(
            "Extract installation archive",
            config.archive_location,
            config.home_path,
            marker=installer_marker,
            owner=principal.name,
            group=principal.primary_group,
        ),
    ]


def _response_file_steps(
    config: InstallConfig, principal: Principal
) -> List[BaseStep]:
    bindings = config.template_bindings()
    response_dir = config.response_directory
    return [
        RenderTemplate(
            "Write software install response file",
            INSTALL_RSP_TEMPLATE,
            bindings,
            response_dir / INSTALL_RESPONSE_FILE,
            owner=principal.name,
            group=principal.primary_group,
        ),
        RenderTemplate(
            "Write database creation response file",
            DBCA_RSP_TEMPLATE,
            bindings,
            response_dir / DBCA_RESPONSE_FILE,
            secret=True,
            owner=principal.name,
            group=principal.primary_group,
        ),
    ]


def swap_file_size(config: InstallConfig) -> str:
    """Configured swap size, else the size of physical memory, else the default."""
    if config.tuning.swap_size:
        return config.tuning.swap_size
    memory_mb = get_total_memory_mb()
    if memory_mb:
        return f"{memory_mb}M"
    return static_config.SWAP_SIZE_DEFAULT


def _tuning_steps(config: InstallConfig, principal: Principal) -> List[BaseStep]:
    steps: List[BaseStep] = []
    tuning = config.tuning
    if tuning.kernel_parameters:
        steps.append(
            EnsureConfigBlock(
                "Configure kernel parameters",
                static_config.SYSCTL_CONF_PATH,
                "kernel-parameters",
                [f"{key} = {value}" for key, value in static_config.KERNEL_PARAMETERS.items()],
                reload_command=["sysctl", "-p"],
            )
        )
    if tuning.user_limits:
        lines = []
        for item, soft, hard in static_config.USER_LIMITS:
            lines.append(f"{principal.name}   soft   {item}   {soft}")
            lines.append(f"{principal.name}   hard   {item}   {hard}")
        steps.append(
            EnsureConfigBlock(
                "Configure shell limits",
                static_config.LIMITS_CONF_PATH,
                "user-limits",
                lines,
            )
        )
    if tuning.tmpfs_size:
        steps.append(
            EnsureConfigBlock(
                "Configure /dev/shm size",
                static_config.FSTAB_PATH,
                "shm",
                [f"tmpfs /dev/shm tmpfs size={tuning.tmpfs_size} 0 0"],
                reload_command=["mount", "-o", f"remount,size={tuning.tmpfs_size}", "/dev/shm"],
            )
        )
    if tuning.swap:
        steps.append(
            EnsureSwapFile(
                "Create swap file",
                static_config.SWAP_FILE_PATH,
                swap_file_size(config),
            )
        )
    return steps


def build_linux_plan(config: InstallConfig) -> List[BaseStep]:
    principal = install_principal(config)
    home = Path(config.home_path)
    base = Path(config.base_path)
    response_dir = config.response_directory
    sid = config.database.sid
    oracle_env = {"ORACLE_HOME": str(home), "ORACLE_BASE": str(base), "ORACLE_SID": sid}

    steps = _common_prefix(config, principal, INSTALLER_MARKER_LINUX)
    steps.extend(
        [
            SetPermissions(
                "Set ownership of base directory",
                base,
                principal.name,
                rights="775",
                group=principal.primary_group,
                recursive=True,
            ),
            SetPermissions(
                "Set ownership of inventory directory",
                config.inventory_path,
                principal.name,
                rights="775",
                group=principal.primary_group,
                recursive=True,
            ),
        ]
    )
    steps.extend(_tuning_steps(config, principal))
    steps.extend(_response_file_steps(config, principal))
    steps.extend(
        [
            RunExternalProcess(
                "Install database software",
                home / INSTALLER_MARKER_LINUX,
                [
                    *static_config.INSTALLER_FLAGS,
                    "-responseFile",
                    str(response_dir / INSTALL_RESPONSE_FILE),
                ],
                run_as=principal,
                env={"DISPLAY": ":0.0", **oracle_env},
                cwd=home,
                creates=Path(config.inventory_path) / "ContentsXML" / "inventory.xml",
            ),
            RunExternalProcess(
                "Run root configuration script",
                home / "root.sh",
                creates=Path("/etc/oratab"),
            ),
            RunExternalProcess(
                "Create database",
                home / "bin" / "dbca",
                ["-silent", "-createDatabase", "-responseFile", str(response_dir / DBCA_RESPONSE_FILE)],
                run_as=principal,
                env=oracle_env,
                creates=base / "oradata" / sid.upper(),
            ),
        ]
    )
    for var_name, value in database_environment(config).items():
        steps.append(
            SetPersistentEnvVar(
                f"Persist {var_name}", var_name, value, scope="machine"
            )
        )
        steps.append(
            SetPersistentEnvVar(
                f"Persist {var_name} for {principal.name}",
                var_name,
                value,
                scope="user",
                principal=principal,
            )
        )
    steps.extend(
        [
            RunExternalProcess(
                "Start listener",
                home / "bin" / "lsnrctl",
                ["start"],
                run_as=principal,
                env=oracle_env,
                creates=base / "diag" / "tnslsnr",
            ),
            RegisterService(
                "Register database service",
                ServiceDefinition(
                    name=config.service_name,
                    description="Oracle Database Service",
                    start_command=f"{home}/bin/dbstart {home}",
                    stop_command=f"{home}/bin/dbshut {home}",
                    run_as=principal,
                    environment=service_environment(config),
                    service_type="forking",
                ),
            ),
        ]
    )
    return steps


def build_windows_plan(config: InstallConfig) -> List[BaseStep]:
    principal = install_principal(config)
    home = PureWindowsPath(config.home_path)
    response_dir = PureWindowsPath(config.response_directory)
    sid = config.database.sid

    steps = _common_prefix(config, principal, INSTALLER_MARKER_WINDOWS)
    steps.append(
        SetPermissions(
            "Grant install user full control of base directory",
            config.base_path,
            principal.name,
            rights="F",
            recursive=True,
        )
    )
    steps.extend(_response_file_steps(config, principal))
    steps.extend(
        [
            RunExternalProcess(
                "Install database software",
                home / INSTALLER_MARKER_WINDOWS,
                [
                    *static_config.INSTALLER_FLAGS,
                    "-responseFile",
                    str(response_dir / INSTALL_RESPONSE_FILE),
                ],
                cwd=config.home_path,
                creates=Path(config.home_path) / "bin" / "oracle.exe",
            ),
            RunExternalProcess(
                "Create database",
                home / "bin" / "dbca.bat",
                ["-silent", "-createDatabase", "-responseFile", str(response_dir / DBCA_RESPONSE_FILE)],
                env={"ORACLE_HOME": str(home), "ORACLE_SID": sid},
                creates=Path(config.base_path) / "oradata" / sid.upper(),
            ),
        ]
    )
    for var_name, value in database_environment(config, windows=True).items():
        steps.append(
            SetPersistentEnvVar(
                f"Persist {var_name}", var_name, value, scope="machine"
            )
        )
    steps.append(
        RegisterService(
            "Register database service",
            ServiceDefinition(
                name=f"OracleService{sid.upper()}",
                description=f"Oracle Database {sid}",
                start_command=f"{home / 'bin' / 'ORACLE.EXE'} {sid.upper()}",
                environment=service_environment(config),
            ),
        )
    )
    return steps


def build_install_plan(
    config: InstallConfig,
    platform: PlatformAdapter,
    current_logger: Optional[logging.Logger] = None,
) -> List[BaseStep]:
    """
    Return the standard installation steps for ``platform``.

    Args:
        config: Installation settings.
        platform: The adapter the plan will run against.
        current_logger: Optional logger.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if platform.os_name == "windows":
        steps = build_windows_plan(config)
    else:
        steps = build_linux_plan(config)
    logger_to_use.debug(
        f"Built {platform.os_name} install plan with {len(steps)} steps."
    )
    return steps
