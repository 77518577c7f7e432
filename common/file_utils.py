# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: timestamped backups, atomic writes with
restricted permissions and marker-delimited "managed blocks" inside
configuration files.
"""

import datetime
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from common.command_utils import log_provision
from common.exceptions import FilesystemError, InsufficientPermissionError
from provision.config import SYMBOLS_DEFAULT
from provision.config_models import InstallConfig

module_logger = logging.getLogger(__name__)

BLOCK_BEGIN = "# BEGIN db-provisioner: {block_id}"
BLOCK_END = "# END db-provisioner: {block_id}"


def translate_os_error(error: OSError, action: str) -> Exception:
    """Map an ``OSError`` onto the provisioning error taxonomy."""
    if isinstance(error, PermissionError):
        return InsufficientPermissionError(f"{action}: {error}")
    return FilesystemError(f"{action}: {error}")


def backup_file(
    file_path: Path,
    config: Optional[InstallConfig],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[Path]:
    """
    Copy ``file_path`` to ``<file_path>.bak.<timestamp>``.

    Returns:
        The backup path, or None when there was nothing to back up.

    Raises:
        FilesystemError / InsufficientPermissionError: the copy failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = config.symbols if config and config.symbols else SYMBOLS_DEFAULT

    if not file_path.is_file():
        log_provision(
            f"{symbols.get('info', 'ℹ️')} File {file_path} does not exist or is not a regular file. No backup needed.",
            "debug",
            logger_to_use,
            config,
        )
        return None

    timestamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_path = file_path.with_name(f"{file_path.name}.bak.{timestamp}")
    try:
        shutil.copy2(file_path, backup_path)
    except OSError as e:
        raise translate_os_error(e, f"Failed to back up {file_path}") from e

    log_provision(
        f"{symbols.get('success', '✅')} Backed up {file_path} to {backup_path}",
        "info",
        logger_to_use,
        config,
    )
    return backup_path


def write_text_file(
    file_path: Path,
    content: str,
    mode: Optional[int] = None,
) -> None:
    """
    Atomically replace ``file_path`` with ``content``.

    The data is written to a temporary file in the same directory, chmod-ed
    to ``mode`` before any content lands in it, then renamed over the target.
    """
    temp_file_path = ""
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_file_path = tempfile.mkstemp(
            prefix=f".{file_path.name}.", dir=str(file_path.parent)
        )
        if mode is not None:
            os.chmod(temp_file_path, mode)
        elif file_path.exists():
            shutil.copymode(file_path, temp_file_path)
        else:
            os.chmod(temp_file_path, 0o644)
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(content)
        os.replace(temp_file_path, file_path)
        temp_file_path = ""
    except OSError as e:
        raise translate_os_error(e, f"Failed to write {file_path}") from e
    finally:
        if temp_file_path and os.path.exists(temp_file_path):
            os.unlink(temp_file_path)


def render_managed_block(block_id: str, lines: Sequence[str]) -> str:
    body = "\n".join(line.rstrip("\n") for line in lines)
    return (
        f"{BLOCK_BEGIN.format(block_id=block_id)}\n"
        f"{body}\n"
        f"{BLOCK_END.format(block_id=block_id)}\n"
    )


def read_managed_block(file_path: Path, block_id: str) -> Optional[List[str]]:
    """
    Return the lines between the markers of ``block_id`` in ``file_path``,
    or None when the file or block does not exist.
    """
    if not file_path.is_file():
        return None
    begin = BLOCK_BEGIN.format(block_id=block_id)
    end = BLOCK_END.format(block_id=block_id)
    inside = False
    collected: List[str] = []
    for line in file_path.read_text(encoding="utf-8").splitlines():
        if line.strip() == begin:
            inside = True
            collected = []
            continue
        if inside and line.strip() == end:
            return collected
        if inside:
            collected.append(line)
    return None


def upsert_managed_block(
    file_path: Path,
    block_id: str,
    lines: Sequence[str],
    mode: Optional[int] = None,
) -> bool:
    """
    Insert or replace the managed block ``block_id`` in ``file_path``.

    Content outside the markers is preserved. Returns True if the file was
    changed.
    """
    block = render_managed_block(block_id, lines)
    begin = BLOCK_BEGIN.format(block_id=block_id)
    end = BLOCK_END.format(block_id=block_id)

    try:
        existing = (
            file_path.read_text(encoding="utf-8") if file_path.exists() else ""
        )
    except OSError as e:
        raise translate_os_error(e, f"Failed to read {file_path}") from e

    kept: List[str] = []
    inside = False
    replaced = False
    for line in existing.splitlines(keepends=True):
        stripped = line.strip()
        if stripped == begin:
            inside = True
            continue
        if inside:
            if stripped == end:
                inside = False
                if not replaced:
                    kept.append(block)
                    replaced = True
            continue
        kept.append(line)

    if not replaced:
        if kept and not kept[-1].endswith("\n"):
            kept[-1] = kept[-1] + "\n"
        kept.append(block)

    new_content = "".join(kept)
    if new_content == existing:
        return False
    write_text_file(file_path, new_content, mode=mode)
    return True
