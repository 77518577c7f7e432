"""
Windows implementation of the platform primitives.

Local accounts and services are managed through PowerShell scripts fed on
standard input (so credentials never appear on a command line that gets
logged), ACLs through icacls and environment variables through setx / reg.
"""

import base64
import getpass
import re
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from common.command_utils import log_provision, run_command
from common.exceptions import ConfigurationError, InsufficientPermissionError
from engine.models import Principal, ServiceDefinition
from engine.platforms.base import PlatformAdapter

POWERSHELL = ["powershell.exe", "-NoProfile", "-NonInteractive", "-Command", "-"]

MACHINE_ENV_KEY = r"HKLM\SYSTEM\CurrentControlSet\Control\Session Manager\Environment"
USER_ENV_KEY = r"HKCU\Environment"


def ps_quote(value: str) -> str:
    """Quote ``value`` as a PowerShell single-quoted literal."""
    return "'" + value.replace("'", "''") + "'"


def encode_powershell(script: str) -> str:
    return base64.b64encode(script.encode("utf-16-le")).decode("ascii")


def _credential_lines(principal: Principal) -> List[str]:
    if not principal.password:
        raise ConfigurationError(
            f"A password is required to act as '{principal.name}' on Windows."
        )
    account = ps_quote(".\\" + principal.name)
    return [
        f"$pw = ConvertTo-SecureString {ps_quote(principal.password)} -AsPlainText -Force",
        f"$cred = New-Object System.Management.Automation.PSCredential({account}, $pw)",
    ]


class WindowsPlatformAdapter(PlatformAdapter):
    """Platform primitives for Windows Server / Windows hosts."""

    os_name = "windows"

    def _run_powershell(
        self, lines: List[str], action: str, default: type = ConfigurationError
    ) -> subprocess.CompletedProcess:
        script = "\n".join(["$ErrorActionPreference = 'Stop'", *lines]) + "\n"
        try:
            return run_command(
                POWERSHELL,
                self.config,
                capture_output=True,
                cmd_input=script,
                current_logger=self.logger,
            )
        except subprocess.CalledProcessError as e:
            self.raise_for_command_failure(e, action, default=default)

    # --- principals ---

    def principal_exists(self, name: str) -> bool:
        result = run_command(
            ["net", "user", name],
            self.config,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        return result.returncode == 0

    def create_principal(self, principal: Principal) -> None:
        lines = []
        for group in principal.all_groups:
            lines.append(
                f"if (-not (Get-LocalGroup -Name {ps_quote(group)} -ErrorAction SilentlyContinue)) "
                f"{{ New-LocalGroup -Name {ps_quote(group)} | Out-Null }}"
            )
        if principal.password:
            lines.append(
                f"$pw = ConvertTo-SecureString {ps_quote(principal.password)} -AsPlainText -Force"
            )
            lines.append(
                f"New-LocalUser -Name {ps_quote(principal.name)} -Password $pw -PasswordNeverExpires | Out-Null"
            )
        else:
            lines.append(
                f"New-LocalUser -Name {ps_quote(principal.name)} -NoPassword | Out-Null"
            )
        for group in principal.all_groups:
            lines.append(
                f"Add-LocalGroupMember -Group {ps_quote(group)} -Member {ps_quote(principal.name)}"
            )
        self._run_powershell(lines, f"Creating user '{principal.name}'")

    # --- ownership ---

    def set_owner_and_mode(
        self,
        path: Path,
        owner: Optional[str],
        group: Optional[str] = None,
        rights: Optional[str] = None,
        recursive: bool = False,
    ) -> None:
        recursive_flag = ["/T"] if recursive else []
        try:
            if owner:
                run_command(
                    ["icacls", str(path), "/setowner", owner, *recursive_flag],
                    self.config,
                    capture_output=True,
                    current_logger=self.logger,
                )
            if rights:
                inheritance = "(OI)(CI)" if path.is_dir() else ""
                for trustee in (owner, group):
                    if not trustee:
                        continue
                    run_command(
                        ["icacls", str(path), "/grant", f"{trustee}:{inheritance}{rights}", *recursive_flag],
                        self.config,
                        capture_output=True,
                        current_logger=self.logger,
                    )
        except subprocess.CalledProcessError as e:
            self.raise_for_command_failure(
                e,
                f"Setting ACLs on {path}",
                default=InsufficientPermissionError,
            )

    # --- environment ---

    def _env_key(self, scope: str, principal: Optional[Principal]) -> str:
        if scope == "machine":
            return MACHINE_ENV_KEY
        if scope == "user":
            if principal is not None and principal.name.lower() != getpass.getuser().lower():
                raise ConfigurationError(
                    f"User-scoped variables can only be written for the running account, not '{principal.name}'."
                )
            return USER_ENV_KEY
        raise ConfigurationError(f"Unknown environment scope '{scope}'")

    def read_persistent_environment_variable(
        self, name: str, scope: str, principal: Optional[Principal] = None
    ) -> Optional[str]:
        key = self._env_key(scope, principal)
        result = run_command(
            ["reg", "query", key, "/v", name],
            self.config,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        if result.returncode != 0:
            return None
        pattern = re.compile(rf"^\s*{re.escape(name)}\s+REG_\w+\s+(.*)$", re.IGNORECASE)
        for line in (result.stdout or "").splitlines():
            match = pattern.match(line)
            if match:
                return match.group(1).rstrip()
        return None

    def persist_environment_variable(
        self,
        name: str,
        value: str,
        scope: str,
        principal: Optional[Principal] = None,
    ) -> None:
        self._env_key(scope, principal)
        command = ["setx", name, value]
        if scope == "machine":
            command.append("/M")
        try:
            run_command(
                command,
                self.config,
                capture_output=True,
                current_logger=self.logger,
            )
        except subprocess.CalledProcessError as e:
            self.raise_for_command_failure(
                e,
                f"Persisting environment variable {name}",
                default=InsufficientPermissionError,
            )

    # --- services ---

    def is_service_registered(self, name: str) -> bool:
        result = run_command(
            ["sc.exe", "qc", name],
            self.config,
            check=False,
            capture_output=True,
            current_logger=self.logger,
        )
        return result.returncode == 0 and "AUTO_START" in (result.stdout or "")

    def install_service_definition(self, definition: ServiceDefinition) -> None:
        lines = []
        new_service = (
            f"New-Service -Name {ps_quote(definition.name)} "
            f"-BinaryPathName {ps_quote(definition.start_command)} "
            f"-DisplayName {ps_quote(definition.description or definition.name)} "
            "-StartupType Automatic"
        )
        if definition.run_as is not None:
            lines.extend(_credential_lines(definition.run_as))
            new_service += " -Credential $cred"
        lines.append(new_service + " | Out-Null")
        if definition.environment:
            entries = ", ".join(
                ps_quote(f"{k}={v}") for k, v in definition.environment.items()
            )
            lines.append(
                "Set-ItemProperty -Path "
                f"{ps_quote('HKLM:SYSTEM/CurrentControlSet/Services/' + definition.name)} "
                f"-Name Environment -Type MultiString -Value @({entries})"
            )
        if definition.stop_command:
            log_provision(
                f"Stop command for '{definition.name}' is handled by the service control manager; ignoring '{definition.stop_command}'.",
                "debug",
                self.logger,
                self.config,
            )
        self._run_powershell(lines, f"Registering service '{definition.name}'")

    # --- impersonation ---

    def wrap_command_for_principal(
        self,
        command: List[str],
        principal: Principal,
        env: Optional[Dict[str, str]] = None,
    ) -> List[str]:
        lines = list(_credential_lines(principal))
        for key, value in (env or {}).items():
            lines.append(f"$env:{key} = {ps_quote(value)}")
        arguments = ", ".join(ps_quote(arg) for arg in command[1:])
        start = (
            f"$p = Start-Process -FilePath {ps_quote(command[0])} "
            "-Credential $cred -Wait -PassThru -NoNewWindow"
        )
        if arguments:
            start += f" -ArgumentList @({arguments})"
        lines.append(start)
        lines.append("exit $p.ExitCode")
        return [
            "powershell.exe",
            "-NoProfile",
            "-NonInteractive",
            "-EncodedCommand",
            encode_powershell("\n".join(lines)),
        ]
