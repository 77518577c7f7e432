"""
Extraction of the installation archive into the database home.

The archive may be a local file or an http(s) URL. Members are unpacked
into a staging directory beside the destination and moved into place only
once the whole archive was extracted, so a failure never leaves a
half-populated destination behind.
"""

import logging
import os
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests

from common.command_utils import log_provision
from common.exceptions import (
    FilesystemError,
    NotFoundError,
    ProvisionError,
    StepCancelledError,
)
from common.file_utils import translate_os_error
from common.system_utils import directory_is_nonempty
from engine.base_step import BaseStep
from engine.context import StepContext
from engine.models import StepResult
from engine.registry import StepRegistry
from provision import config as static_config
from provision.config_models import InstallConfig

module_logger = logging.getLogger(__name__)


def is_remote(location: str) -> bool:
    return location.lower().startswith(("http://", "https://"))


def download_archive(
    url: str,
    download_to_path: Path,
    config: Optional[InstallConfig] = None,
    current_logger: Optional[logging.Logger] = None,
    timeout: int = static_config.DOWNLOAD_TIMEOUT,
) -> Path:
    """
    Download ``url`` to ``download_to_path``.

    Raises:
        NotFoundError: The server answered 404.
        ProvisionError: Any other HTTP or connection failure.
        FilesystemError: The file could not be written.
    """
    logger_to_use = current_logger if current_logger else module_logger
    log_provision(
        f"Downloading installation archive from: {url}",
        "info",
        logger_to_use,
        config,
    )
    response: Optional[requests.Response] = None
    try:
        response = requests.get(url, stream=True, timeout=timeout)
        response.raise_for_status()
        with open(download_to_path, "wb") as f:
            for chunk in response.iter_content(
                chunk_size=static_config.DOWNLOAD_CHUNK_SIZE
            ):
                if chunk:
                    f.write(chunk)
    except requests.exceptions.HTTPError as http_err:
        status_code = response.status_code if response is not None else None
        if status_code == 404:
            raise NotFoundError(f"Archive not found at {url}") from http_err
        raise ProvisionError(
            f"HTTP error downloading {url}: {http_err}"
        ) from http_err
    except requests.exceptions.RequestException as req_err:
        raise ProvisionError(f"Failed to download {url}: {req_err}") from req_err
    except OSError as io_err:
        raise translate_os_error(
            io_err, f"Saving download to {download_to_path}"
        ) from io_err
    finally:
        if response is not None:
            response.close()

    log_provision(
        f"Archive downloaded to: {download_to_path}",
        "debug",
        logger_to_use,
        config,
    )
    return download_to_path


def _member_target(root: Path, member_name: str, base: Optional[Path] = None) -> Path:
    resolved_root = root.resolve()
    target = ((base or root) / member_name).resolve()
    if target != resolved_root and resolved_root not in target.parents:
        raise FilesystemError(
            f"Archive member '{member_name}' would be extracted outside {root}"
        )
    return target


def _extract_zip(
    archive: Path, staging: Path, ctx: Optional[StepContext] = None
) -> int:
    count = 0
    with zipfile.ZipFile(archive, "r") as zip_ref:
        for info in zip_ref.infolist():
            if ctx is not None and ctx.cancelled:
                raise StepCancelledError(f"Extraction of {archive} was cancelled.")
            _member_target(staging, info.filename)
            extracted = zip_ref.extract(info, staging)
            # ZipFile drops POSIX mode bits; installers need their exec bits.
            mode = (info.external_attr >> 16) & 0o7777
            if mode and not info.is_dir():
                os.chmod(extracted, mode)
            count += 1
    return count


def _extract_tar(
    archive: Path, staging: Path, ctx: Optional[StepContext] = None
) -> int:
    with tarfile.open(archive, "r:*") as tar_ref:
        members = tar_ref.getmembers()
        for member in members:
            _member_target(staging, member.name)
            if member.issym() or member.islnk():
                link_base = staging if member.islnk() else (staging / member.name).parent
                _member_target(staging, member.linkname, base=link_base)
        if ctx is not None and ctx.cancelled:
            raise StepCancelledError(f"Extraction of {archive} was cancelled.")
        if hasattr(tarfile, "data_filter"):
            tar_ref.extractall(staging, filter="data")
        else:
            tar_ref.extractall(staging)
    return len(members)


def extract_archive(
    archive: Path, staging: Path, ctx: Optional[StepContext] = None
) -> int:
    """
    Unpack ``archive`` (zip or tar) into ``staging``.

    Returns:
        The number of archive members extracted.

    Raises:
        FilesystemError: Unsupported or corrupt archive, or a member path
            escaping ``staging``.
    """
    try:
        if zipfile.is_zipfile(archive):
            return _extract_zip(archive, staging, ctx)
        if tarfile.is_tarfile(archive):
            return _extract_tar(archive, staging, ctx)
    except (zipfile.BadZipFile, tarfile.TarError) as e:
        raise FilesystemError(f"Corrupt archive {archive}: {e}") from e
    raise FilesystemError(f"Unsupported archive format: {archive}")


def _move_into_place(staging: Path, dest: Path) -> None:
    if not dest.exists():
        os.replace(staging, dest)
        os.chmod(dest, 0o755)
        return
    entries = list(staging.iterdir())
    clashes = [entry.name for entry in entries if (dest / entry.name).exists()]
    if clashes:
        raise FilesystemError(
            f"Refusing to overwrite existing entries in {dest}: {', '.join(sorted(clashes))}"
        )
    for entry in entries:
        shutil.move(str(entry), str(dest / entry.name))


@StepRegistry.register("extract_archive")
class ExtractArchive(BaseStep):
    """Unpack the installation archive into ``dest_dir``."""

    def __init__(
        self,
        name: str,
        archive_path: Union[str, Path],
        dest_dir: Union[str, Path],
        marker: Optional[str] = None,
        owner: Optional[str] = None,
        group: Optional[str] = None,
    ):
        super().__init__(name)
        self.archive_path = str(archive_path)
        self.dest_dir = Path(dest_dir)
        self.marker = marker
        self.owner = owner
        self.group = group

    def check(self, ctx: StepContext) -> bool:
        if self.marker:
            return (self.dest_dir / self.marker).exists()
        return directory_is_nonempty(self.dest_dir)

    def _local_archive(self) -> Path:
        archive = Path(self.archive_path)
        if not archive.is_file():
            raise NotFoundError(f"Installation archive not found: {archive}")
        return archive

    def apply(self, ctx: StepContext) -> StepResult:
        parent = self.dest_dir.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise translate_os_error(e, f"Creating {parent}") from e

        downloaded: Optional[Path] = None
        staging: Optional[Path] = None
        try:
            if is_remote(self.archive_path):
                fd, temp_name = tempfile.mkstemp(
                    prefix=f".{self.dest_dir.name}.", suffix=".download", dir=str(parent)
                )
                os.close(fd)
                downloaded = Path(temp_name)
                archive = download_archive(
                    self.archive_path, downloaded, ctx.config, ctx.logger
                )
            else:
                archive = self._local_archive()

            staging = Path(
                tempfile.mkdtemp(prefix=f".{self.dest_dir.name}.staging-", dir=str(parent))
            )
            log_provision(
                f"{ctx.symbols.get('package', '📦')} Extracting {archive} into {self.dest_dir}",
                "info",
                ctx.logger,
                ctx.config,
            )
            count = extract_archive(archive, staging, ctx)
            _move_into_place(staging, self.dest_dir)
            staging = None
        except OSError as e:
            if isinstance(e, ProvisionError):
                raise
            raise translate_os_error(e, f"Extracting {self.archive_path}") from e
        finally:
            if staging is not None and staging.exists():
                shutil.rmtree(staging, ignore_errors=True)
            if downloaded is not None and downloaded.exists():
                downloaded.unlink()

        if self.owner or self.group:
            ctx.platform.set_owner_and_mode(
                self.dest_dir, self.owner, group=self.group, recursive=True
            )
        return StepResult.succeeded(
            self.name, message=f"extracted {count} entries into {self.dest_dir}"
        )

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["archive_path"] = self.archive_path
        data["dest_dir"] = str(self.dest_dir)
        return data
