"""
Marker-delimited blocks in system configuration files (sysctl.conf,
limits.conf, fstab, shell rc files).
"""

import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from common.command_utils import log_provision, run_elevated_command
from common.exceptions import ProvisionError
from common.file_utils import backup_file, read_managed_block, upsert_managed_block
from engine.base_step import BaseStep
from engine.context import StepContext
from engine.models import StepResult
from engine.platforms.base import PlatformAdapter
from engine.registry import StepRegistry


@StepRegistry.register("ensure_config_block")
class EnsureConfigBlock(BaseStep):
    """
    Keep a managed block with ``lines`` in ``path``.

    The previous file is backed up before it is changed. ``reload_command``
    (e.g. ``["sysctl", "-p"]``) runs after a successful write.
    """

    def __init__(
        self,
        name: str,
        path: Union[str, Path],
        block_id: str,
        lines: Sequence[str],
        reload_command: Optional[Sequence[str]] = None,
    ):
        super().__init__(name)
        self.path = Path(path)
        self.block_id = block_id
        self.lines: List[str] = [str(line) for line in lines]
        self.reload_command = list(reload_command) if reload_command else None

    def check(self, ctx: StepContext) -> bool:
        return read_managed_block(self.path, self.block_id) == self.lines

    def apply(self, ctx: StepContext) -> StepResult:
        backup_file(self.path, ctx.config, ctx.logger)
        changed = upsert_managed_block(self.path, self.block_id, self.lines)
        log_provision(
            f"{ctx.symbols.get('success', '✅')} {'Updated' if changed else 'Verified'} block '{self.block_id}' in {self.path}.",
            "info",
            ctx.logger,
            ctx.config,
        )
        if self.reload_command:
            try:
                run_elevated_command(
                    self.reload_command,
                    ctx.config,
                    capture_output=True,
                    current_logger=ctx.logger,
                )
            except subprocess.CalledProcessError as e:
                PlatformAdapter.raise_for_command_failure(
                    e, f"Reloading after {self.path} change", default=ProvisionError
                )
            except FileNotFoundError as e:
                raise ProvisionError(
                    f"Reload command not found: {self.reload_command[0]}"
                ) from e
        return StepResult.succeeded(self.name, message=str(self.path))

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["path"] = str(self.path)
        data["block_id"] = self.block_id
        return data
