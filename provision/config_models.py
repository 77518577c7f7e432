# provision/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for the installation configuration.

``InstallConfig`` is the single, immutable parameter block handed to every
provisioning step. It is built once (defaults < environment < YAML < CLI, see
``provision.config_loader``) and frozen; steps only ever read from it.
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from provision import config as static_config
from provision.config import SYMBOLS_DEFAULT


class AccountSettings(BaseModel):
    """Service account that owns the database software."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    user: str = Field(
        default=static_config.INSTALL_USER_DEFAULT,
        description="Name of the software owner account.",
    )
    password: str = Field(
        default=static_config.INSTALL_PASSWORD_DEFAULT,
        description="Password for the software owner account.",
        exclude=True,
        repr=False,
    )
    primary_group: str = Field(
        default=static_config.INSTALL_GROUP_DEFAULT,
        description="Primary (inventory) group of the account.",
    )
    groups: Tuple[str, ...] = Field(
        default=tuple(static_config.INSTALL_SECONDARY_GROUPS_DEFAULT),
        description="Secondary groups (OSDBA, OSOPER ...).",
    )
    shell: str = Field(default="/bin/bash", description="Login shell (Linux).")

    @field_validator("user", "primary_group")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class DatabaseSettings(BaseModel):
    """Parameters for the database created after the software install."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    sid: str = Field(default=static_config.DB_SID_DEFAULT, description="Database SID.")
    pdb_name: str = Field(
        default=static_config.DB_PDB_DEFAULT, description="Pluggable database name."
    )
    domain: str = Field(
        default=static_config.DB_DOMAIN_DEFAULT,
        description="Domain appended to the SID for the global database name.",
    )
    charset: str = Field(default=static_config.DB_CHARSET_DEFAULT)
    national_charset: str = Field(default=static_config.DB_NCHARSET_DEFAULT)
    memory_percent: int = Field(
        default=static_config.DB_MEMORY_PERCENT_DEFAULT,
        ge=1,
        le=90,
        description="Percentage of total memory allocated to the instance.",
    )
    edition: Literal["EE", "SE2"] = Field(
        default=static_config.DB_EDITION_DEFAULT,
        description="Install edition: EE (Enterprise) or SE2 (Standard).",
    )
    archive_log_mode: bool = Field(
        default=False, description="Enable ARCHIVELOG mode on creation."
    )
    sample_schema: bool = Field(
        default=True, description="Install the sample schemas."
    )
    listener_port: int = Field(default=static_config.LISTENER_PORT_DEFAULT, gt=0, lt=65536)
    em_express_port: int = Field(default=static_config.EM_EXPRESS_PORT_DEFAULT, gt=0, lt=65536)
    sys_password: str = Field(
        default=static_config.SYS_PASSWORD_DEFAULT, exclude=True, repr=False
    )
    system_password: str = Field(
        default=static_config.SYSTEM_PASSWORD_DEFAULT, exclude=True, repr=False
    )
    dbsnmp_password: str = Field(
        default=static_config.DBSNMP_PASSWORD_DEFAULT, exclude=True, repr=False
    )

    @property
    def global_name(self) -> str:
        return f"{self.sid}.{self.domain}" if self.domain else self.sid


class TuningSettings(BaseModel):
    """Host tuning applied before the software install (Linux only)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    kernel_parameters: bool = Field(
        default=True, description="Write recommended kernel parameters to sysctl.conf."
    )
    user_limits: bool = Field(
        default=True, description="Write recommended shell limits for the install user."
    )
    tmpfs_size: Optional[str] = Field(
        default=static_config.TMPFS_SIZE_DEFAULT,
        description="Size for /dev/shm in /etc/fstab; null to leave untouched.",
    )
    swap: bool = Field(
        default=True, description="Create a swap file when the host has no swap."
    )
    swap_size: Optional[str] = Field(
        default=None,
        description="Swap file size for fallocate (e.g. 8G); unset means the size of physical memory.",
    )


class InstallConfig(BaseSettings):
    """Main installation settings."""

    model_config = SettingsConfigDict(
        env_prefix=static_config.ENV_PREFIX,
        env_nested_delimiter="__",
        frozen=True,
        extra="ignore",
    )

    base_path: Path = Field(default=Path(static_config.BASE_PATH_DEFAULT))
    home_path: Path = Field(default=Path(static_config.HOME_PATH_DEFAULT))
    inventory_path: Path = Field(default=Path(static_config.INVENTORY_PATH_DEFAULT))
    install_source: str = Field(
        default=static_config.INSTALL_SOURCE_DEFAULT,
        description="Directory or http(s) URL holding the installation archive.",
    )
    archive_filename: str = Field(default=static_config.ARCHIVE_FILENAME_DEFAULT)
    response_dir: Optional[Path] = Field(
        default=None,
        description="Where generated response files are written. Defaults to home_path.",
    )
    hostname: str = Field(default="localhost")
    platform: Optional[Literal["linux", "windows"]] = Field(
        default=None,
        description="Force a platform adapter instead of detecting the running OS.",
    )
    service_name: str = Field(default=static_config.SERVICE_NAME_DEFAULT)
    process_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Timeout in seconds for installer sub-processes; unset means wait forever.",
    )
    log_prefix: str = Field(default="[DB-PROVISION]")
    dev_override_unsafe_password: bool = Field(
        default=False,
        description="DEV FLAG: allow the built-in default passwords, skip the account password policy and suppress related warnings.",
    )

    account: AccountSettings = Field(default_factory=AccountSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    tuning: TuningSettings = Field(default_factory=TuningSettings)

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))

    @field_validator("install_source", "archive_filename")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @property
    def source_is_remote(self) -> bool:
        return self.install_source.lower().startswith(("http://", "https://"))

    @property
    def archive_location(self) -> str:
        """Full path or URL of the installation archive."""
        if self.source_is_remote:
            return f"{self.install_source.rstrip('/')}/{self.archive_filename}"
        return str(Path(self.install_source) / self.archive_filename)

    @property
    def response_directory(self) -> Path:
        return self.response_dir or self.home_path

    def uses_default_passwords(self) -> bool:
        """Return True if any credential still holds its built-in default."""
        return any(
            (
                self.account.password == static_config.INSTALL_PASSWORD_DEFAULT,
                self.database.sys_password == static_config.SYS_PASSWORD_DEFAULT,
                self.database.system_password == static_config.SYSTEM_PASSWORD_DEFAULT,
                self.database.dbsnmp_password == static_config.DBSNMP_PASSWORD_DEFAULT,
            )
        )

    def template_bindings(self) -> Dict[str, Any]:
        """Flat mapping of every value response-file templates may reference."""
        db = self.database

        return {
            "base_path": str(self.base_path),
            "home_path": str(self.home_path),
            "inventory_path": str(self.inventory_path),
            "hostname": self.hostname,
            "install_user": self.account.user,
            "install_group": self.account.primary_group,
            "dba_group": self.account.groups[0] if self.account.groups else self.account.primary_group,
            "oper_group": self.account.groups[1] if len(self.account.groups) > 1 else self.account.primary_group,
            "edition": db.edition,
            "sid": db.sid,
            "pdb_name": db.pdb_name,
            "global_name": db.global_name,
            "charset": db.charset,
            "national_charset": db.national_charset,
            "memory_percent": db.memory_percent,
            "archive_log_mode": str(db.archive_log_mode).lower(),
            "sample_schema": str(db.sample_schema).lower(),
            "listener_port": db.listener_port,
            "em_express_port": db.em_express_port,
            "sys_password": db.sys_password,
            "system_password": db.system_password,
            "dbsnmp_password": db.dbsnmp_password,
            "service_name": self.service_name,
        }
