# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level helpers: operating-system detection and host inspection.
"""

import logging
import platform
from pathlib import Path
from typing import Optional

module_logger = logging.getLogger(__name__)

MEMINFO_PATH = Path("/proc/meminfo")


def get_os_name() -> str:
    """Return the running OS as a lowercase name ("linux", "windows", ...)."""
    return platform.system().lower()


def _meminfo_mb(
    key: str, current_logger: Optional[logging.Logger] = None
) -> Optional[int]:
    logger_to_use = current_logger if current_logger else module_logger
    if not MEMINFO_PATH.is_file():
        return None
    try:
        for line in MEMINFO_PATH.read_text(encoding="utf-8").splitlines():
            if line.startswith(f"{key}:"):
                kib = int(line.split()[1])
                return kib // 1024
    except (OSError, ValueError, IndexError) as e:
        logger_to_use.warning(f"Could not read {key} from {MEMINFO_PATH}: {e}")
    return None


def get_total_memory_mb(
    current_logger: Optional[logging.Logger] = None,
) -> Optional[int]:
    """
    Total physical memory in MiB, or None when it cannot be determined.

    Reads /proc/meminfo on Linux; other platforms return None.
    """
    return _meminfo_mb("MemTotal", current_logger)


def get_total_swap_mb(
    current_logger: Optional[logging.Logger] = None,
) -> Optional[int]:
    """Configured swap in MiB (0 when none), or None when unknown."""
    return _meminfo_mb("SwapTotal", current_logger)


def directory_is_nonempty(path: Path) -> bool:
    """True if ``path`` is a directory with at least one entry."""
    if not path.is_dir():
        return False
    return any(path.iterdir())
