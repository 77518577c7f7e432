# provision/config.py
"""
Static constants and default values for the database provisioner.

Values in this module are not user-configurable at runtime; anything a
caller may override lives in ``provision.config_models.InstallConfig``.
"""

from pathlib import Path
from typing import Dict, List

DEFAULT_CONFIG_FILE: str = "config.yaml"
ENV_PREFIX: str = "DBPROV_"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
    "skip": "⏭️",
}

# --- Account defaults ---
INSTALL_USER_DEFAULT: str = "oracle"
INSTALL_GROUP_DEFAULT: str = "oinstall"
INSTALL_SECONDARY_GROUPS_DEFAULT: List[str] = ["dba", "oper"]
# IMPORTANT: Users should override these; the CLI warns when they are left as-is.
INSTALL_PASSWORD_DEFAULT: str = "OraclePassword123"
SYS_PASSWORD_DEFAULT: str = "SysPassword123"
SYSTEM_PASSWORD_DEFAULT: str = "SystemPassword123"
DBSNMP_PASSWORD_DEFAULT: str = "snmpPassword123"

# --- Path defaults ---
BASE_PATH_DEFAULT: str = "/opt/oracle"
HOME_PATH_DEFAULT: str = "/opt/oracle/product/19c/dbhome_1"
INVENTORY_PATH_DEFAULT: str = "/opt/oraInventory"
INSTALL_SOURCE_DEFAULT: str = "/path/to/installation/files"
ARCHIVE_FILENAME_DEFAULT: str = "LINUX.X64_193000_db_home.zip"

# --- Database defaults ---
DB_SID_DEFAULT: str = "orcl"
DB_PDB_DEFAULT: str = "pdb1"
DB_DOMAIN_DEFAULT: str = "localdomain"
DB_CHARSET_DEFAULT: str = "AL32UTF8"
DB_NCHARSET_DEFAULT: str = "UTF8"
DB_MEMORY_PERCENT_DEFAULT: int = 40
DB_EDITION_DEFAULT: str = "EE"
LISTENER_PORT_DEFAULT: int = 1521
EM_EXPRESS_PORT_DEFAULT: int = 5500

SERVICE_NAME_DEFAULT: str = "oracle-rdbms"
TMPFS_SIZE_DEFAULT: str = "2G"
# Used when the host has no swap and neither swap_size nor the memory size is known.
SWAP_SIZE_DEFAULT: str = "8G"
SWAP_FILE_PATH: Path = Path("/swapfile")

# --- Kernel / limits tuning (Linux) ---
SYSCTL_CONF_PATH: Path = Path("/etc/sysctl.conf")
LIMITS_CONF_PATH: Path = Path("/etc/security/limits.conf")
FSTAB_PATH: Path = Path("/etc/fstab")
PROFILE_D_DIR: Path = Path("/etc/profile.d")
SYSTEMD_UNIT_DIR: Path = Path("/etc/systemd/system")

KERNEL_PARAMETERS: Dict[str, str] = {
    "fs.aio-max-nr": "1048576",
    "fs.file-max": "6815744",
    "kernel.shmall": "2097152",
    "kernel.shmmax": "4294967295",
    "kernel.shmmni": "4096",
    "kernel.sem": "250 32000 100 128",
    "net.ipv4.ip_local_port_range": "9000 65500",
    "net.core.rmem_default": "262144",
    "net.core.rmem_max": "4194304",
    "net.core.wmem_default": "262144",
    "net.core.wmem_max": "1048576",
}

# (item, soft, hard)
USER_LIMITS: List[tuple] = [
    ("nofile", "1024", "65536"),
    ("nproc", "16384", "16384"),
    ("stack", "10240", "32768"),
    ("memlock", "134217728", "134217728"),
]

# Installer invocation flags.
INSTALLER_FLAGS: List[str] = [
    "-silent",
    "-ignorePrereqFailure",
    "-waitforcompletion",
]

PASSWORD_MIN_LENGTH: int = 8
SECRET_BINDING_MARKERS: List[str] = ["password", "secret", "token"]

# Default poll interval (seconds) while waiting on child processes.
PROCESS_POLL_INTERVAL: float = 0.2
# Grace period between terminate() and kill() of a child process.
PROCESS_TERMINATE_GRACE: float = 10.0

# Remote archive download settings.
DOWNLOAD_TIMEOUT: int = 120
DOWNLOAD_CHUNK_SIZE: int = 1024 * 1024
