"""
Linux implementation of the platform primitives.

Accounts are managed with the shadow-utils commands, ownership with
chown/chmod, machine-wide environment variables with a managed script in
/etc/profile.d, per-account ones with a managed block in ~/.bashrc, and
services with systemd.
"""

import os
import re
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from common.command_utils import (
    command_exists,
    is_elevated,
    log_provision,
    run_command,
    run_elevated_command,
)
from common.exceptions import (
    ConfigurationError,
    InsufficientPermissionError,
)
from common.file_utils import (
    read_managed_block,
    translate_os_error,
    upsert_managed_block,
    write_text_file,
)
from engine.models import Principal, ServiceDefinition
from engine.platforms.base import PlatformAdapter
from engine.templating import render_template
from provision import config as static_config

SYSTEMD_UNIT_TEMPLATE = """\
[Unit]
Description={description}
After=network.target

[Service]
Type={service_type}
{account_lines}{environment_lines}ExecStart={start_command}
{stop_line}TimeoutSec=0

[Install]
WantedBy=multi-user.target
"""

ENV_BLOCK_ID = "environment"
_EXPORT_RE = re.compile(r"^\s*export\s+([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


def _quote_value(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("`", "\\`")
    return f'"{escaped}"'


def _unquote_value(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        inner = raw[1:-1]
        return re.sub(r'\\(["\\`])', r"\1", inner)
    if len(raw) >= 2 and raw[0] == raw[-1] == "'":
        return raw[1:-1]
    return raw


def parse_exports(lines: List[str]) -> Dict[str, str]:
    """Parse ``export NAME=value`` lines into a mapping."""
    exports: Dict[str, str] = {}
    for line in lines:
        match = _EXPORT_RE.match(line)
        if match:
            exports[match.group(1)] = _unquote_value(match.group(2))
    return exports


def _set_export(lines: List[str], name: str, value: str) -> List[str]:
    new_line = f"export {name}={_quote_value(value)}"
    updated: List[str] = []
    replaced = False
    for line in lines:
        match = _EXPORT_RE.match(line)
        if match and match.group(1) == name:
            if not replaced:
                updated.append(new_line)
                replaced = True
            continue
        updated.append(line)
    if not replaced:
        updated.append(new_line)
    return updated


class LinuxPlatformAdapter(PlatformAdapter):
    """Platform primitives for systemd-based Linux distributions."""

    os_name = "linux"

    def __init__(
        self,
        config=None,
        logger=None,
        profile_dir: Path = static_config.PROFILE_D_DIR,
        unit_dir: Path = static_config.SYSTEMD_UNIT_DIR,
    ):
        super().__init__(config, logger)
        self.profile_dir = profile_dir
        self.unit_dir = unit_dir

    # --- principals ---

    def principal_exists(self, name: str) -> bool:
        result = run_command(
            ["id", "-u", name],
            self.config,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        return result.returncode == 0

    def group_exists(self, name: str) -> bool:
        result = run_command(
            ["getent", "group", name],
            self.config,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        return result.returncode == 0

    def create_principal(self, principal: Principal) -> None:
        for group in principal.all_groups:
            if self.group_exists(group):
                continue
            try:
                run_elevated_command(
                    ["groupadd", group],
                    self.config,
                    capture_output=True,
                    current_logger=self.logger,
                )
            except subprocess.CalledProcessError as e:
                self.raise_for_command_failure(e, f"Creating group '{group}'")

        command = ["useradd", "-m"]
        if principal.shell:
            command += ["-s", principal.shell]
        if principal.home:
            command += ["-d", str(principal.home)]
        if principal.primary_group:
            command += ["-g", principal.primary_group]
        secondary = [g for g in principal.groups if g != principal.primary_group]
        if secondary:
            command += ["-G", ",".join(secondary)]
        command.append(principal.name)

        try:
            run_elevated_command(
                command,
                self.config,
                capture_output=True,
                current_logger=self.logger,
            )
            if principal.password:
                run_elevated_command(
                    ["chpasswd"],
                    self.config,
                    capture_output=True,
                    cmd_input=f"{principal.name}:{principal.password}\n",
                    current_logger=self.logger,
                )
        except subprocess.CalledProcessError as e:
            self.raise_for_command_failure(e, f"Creating user '{principal.name}'")

    # --- ownership ---

    def set_owner_and_mode(
        self,
        path: Path,
        owner: Optional[str],
        group: Optional[str] = None,
        rights: Optional[str] = None,
        recursive: bool = False,
    ) -> None:
        recursive_flag = ["-R"] if recursive else []
        try:
            if owner or group:
                spec = owner or ""
                if group:
                    spec = f"{spec}:{group}"
                run_elevated_command(
                    ["chown", *recursive_flag, spec, str(path)],
                    self.config,
                    capture_output=True,
                    current_logger=self.logger,
                )
            if rights:
                run_elevated_command(
                    ["chmod", *recursive_flag, rights, str(path)],
                    self.config,
                    capture_output=True,
                    current_logger=self.logger,
                )
        except subprocess.CalledProcessError as e:
            self.raise_for_command_failure(
                e,
                f"Setting ownership/permissions on {path}",
                default=InsufficientPermissionError,
            )

    # --- environment ---

    def _profile_script(self) -> Path:
        name = self.config.service_name if self.config else "db-provisioner"
        return self.profile_dir / f"{name}.sh"

    def _user_rc_file(self, principal: Optional[Principal]) -> Path:
        if principal is None:
            raise ConfigurationError(
                "User-scoped environment variables need a principal."
            )
        home = principal.home or Path(os.path.expanduser(f"~{principal.name}"))
        return Path(home) / ".bashrc"

    def read_persistent_environment_variable(
        self, name: str, scope: str, principal: Optional[Principal] = None
    ) -> Optional[str]:
        if scope == "machine":
            script = self._profile_script()
            if not script.is_file():
                return None
            lines = script.read_text(encoding="utf-8").splitlines()
        elif scope == "user":
            lines = read_managed_block(self._user_rc_file(principal), ENV_BLOCK_ID) or []
        else:
            raise ConfigurationError(f"Unknown environment scope '{scope}'")
        return parse_exports(lines).get(name)

    def persist_environment_variable(
        self,
        name: str,
        value: str,
        scope: str,
        principal: Optional[Principal] = None,
    ) -> None:
        if scope == "machine":
            script = self._profile_script()
            try:
                lines = (
                    script.read_text(encoding="utf-8").splitlines()
                    if script.is_file()
                    else ["# Managed by db-provisioner"]
                )
            except OSError as e:
                raise translate_os_error(e, f"Failed to read {script}") from e
            write_text_file(
                script, "\n".join(_set_export(lines, name, value)) + "\n", mode=0o644
            )
        elif scope == "user":
            rc_file = self._user_rc_file(principal)
            lines = read_managed_block(rc_file, ENV_BLOCK_ID) or []
            if upsert_managed_block(rc_file, ENV_BLOCK_ID, _set_export(lines, name, value)):
                if is_elevated():
                    self.set_owner_and_mode(
                        rc_file, principal.name, principal.primary_group
                    )
        else:
            raise ConfigurationError(f"Unknown environment scope '{scope}'")
        log_provision(
            f"Persisted {name} ({scope} scope).", "debug", self.logger, self.config
        )

    # --- services ---

    def _unit_path(self, name: str) -> Path:
        return self.unit_dir / f"{name}.service"

    def is_service_registered(self, name: str) -> bool:
        if not self._unit_path(name).is_file():
            return False
        try:
            result = run_command(
                ["systemctl", "is-enabled", f"{name}.service"],
                self.config,
                check=False,
                capture_output=True,
                current_logger=self.logger,
            )
        except FileNotFoundError:
            return False
        return result.returncode == 0

    def render_unit(self, definition: ServiceDefinition) -> str:
        account_lines = ""
        if definition.run_as is not None:
            account_lines = f"User={definition.run_as.name}\n"
            if definition.run_as.primary_group:
                account_lines += f"Group={definition.run_as.primary_group}\n"
        environment_lines = "".join(
            f'Environment="{key}={value}"\n'
            for key, value in definition.environment.items()
        )
        stop_line = (
            f"ExecStop={definition.stop_command}\n"
            if definition.stop_command
            else ""
        )
        return render_template(
            SYSTEMD_UNIT_TEMPLATE,
            {
                "description": definition.description or definition.name,
                "service_type": definition.service_type,
                "account_lines": account_lines,
                "environment_lines": environment_lines,
                "start_command": definition.start_command,
                "stop_line": stop_line,
            },
        )

    def install_service_definition(self, definition: ServiceDefinition) -> None:
        if not command_exists("systemctl"):
            raise ConfigurationError(
                "systemctl not found; cannot register services on this host."
            )
        write_text_file(
            self._unit_path(definition.name), self.render_unit(definition), mode=0o644
        )
        try:
            run_elevated_command(
                ["systemctl", "daemon-reload"],
                self.config,
                capture_output=True,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["systemctl", "enable", f"{definition.name}.service"],
                self.config,
                capture_output=True,
                current_logger=self.logger,
            )
        except subprocess.CalledProcessError as e:
            self.raise_for_command_failure(
                e,
                f"Enabling service '{definition.name}'",
                default=ConfigurationError,
            )

    # --- impersonation ---

    def wrap_command_for_principal(
        self,
        command: List[str],
        principal: Principal,
        env: Optional[Dict[str, str]] = None,
    ) -> List[str]:
        env_prefix = ["env", *(f"{k}={v}" for k, v in (env or {}).items())] if env else []
        if is_elevated():
            return ["su", "-", principal.name, "-c", shlex.join(env_prefix + list(command))]
        return ["sudo", "-u", principal.name, "-H", "--", *env_prefix, *command]

