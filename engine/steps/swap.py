"""
Swap file creation for hosts that have no swap configured.
"""

import subprocess
from pathlib import Path
from typing import Any, Dict, List, Union

from common.command_utils import log_provision, run_elevated_command
from common.exceptions import NotFoundError, ProvisionError
from common.file_utils import backup_file, upsert_managed_block
from common.system_utils import get_total_swap_mb
from engine.base_step import BaseStep
from engine.context import StepContext
from engine.models import StepResult
from engine.platforms.base import PlatformAdapter
from engine.registry import StepRegistry
from provision import config as static_config

SWAP_BLOCK_ID = "swap"


@StepRegistry.register("ensure_swap")
class EnsureSwapFile(BaseStep):
    """
    Create, format and enable a swap file, and register it in fstab.

    Satisfied as soon as the host has any swap, whatever its source.
    """

    def __init__(
        self,
        name: str,
        path: Union[str, Path],
        size: str,
        fstab_path: Union[str, Path] = static_config.FSTAB_PATH,
    ):
        super().__init__(name)
        self.path = Path(path)
        self.size = str(size)
        self.fstab_path = Path(fstab_path)

    def check(self, ctx: StepContext) -> bool:
        return bool(get_total_swap_mb(ctx.logger))

    def commands(self) -> List[List[str]]:
        swap_file = str(self.path)
        return [
            ["fallocate", "-l", self.size, swap_file],
            ["chmod", "600", swap_file],
            ["mkswap", swap_file],
            ["swapon", swap_file],
        ]

    def apply(self, ctx: StepContext) -> StepResult:
        for command in self.commands():
            try:
                run_elevated_command(
                    command, ctx.config, capture_output=True, current_logger=ctx.logger
                )
            except subprocess.CalledProcessError as e:
                PlatformAdapter.raise_for_command_failure(
                    e, f"Preparing swap file {self.path} ({command[0]})", default=ProvisionError
                )
            except FileNotFoundError as e:
                raise NotFoundError(f"Command not found: {command[0]}") from e

        backup_file(self.fstab_path, ctx.config, ctx.logger)
        upsert_managed_block(
            self.fstab_path, SWAP_BLOCK_ID, [f"{self.path} none swap sw 0 0"]
        )
        log_provision(
            f"{ctx.symbols.get('success', '✅')} Enabled {self.size} swap file {self.path}.",
            "info",
            ctx.logger,
            ctx.config,
        )
        return StepResult.succeeded(self.name, message=f"{self.size} at {self.path}")

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["path"] = str(self.path)
        data["size"] = self.size
        return data
