"""
Directory creation and ownership/permission assignment.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from common.command_utils import log_provision
from common.file_utils import translate_os_error
from engine.base_step import AlwaysApplyStep, BaseStep
from engine.context import StepContext
from engine.models import StepResult
from engine.registry import StepRegistry


@StepRegistry.register("ensure_directory")
class EnsureDirectory(BaseStep):
    """Create every listed directory that does not exist yet."""

    def __init__(
        self,
        name: str,
        paths: Sequence[Union[str, Path]],
        mode: Optional[int] = None,
    ):
        super().__init__(name)
        self.paths: List[Path] = [Path(p) for p in paths]
        self.mode = mode

    @classmethod
    def from_params(
        cls,
        name: str,
        paths: Sequence[Union[str, Path]],
        mode: Optional[Union[int, str]] = None,
    ) -> "EnsureDirectory":
        if isinstance(mode, str):
            mode = int(mode, 8)
        return cls(name, paths, mode)

    def check(self, ctx: StepContext) -> bool:
        return all(path.is_dir() for path in self.paths)

    def apply(self, ctx: StepContext) -> StepResult:
        created: List[str] = []
        # Shallowest first so parents exist before their children.
        for path in sorted(self.paths, key=lambda p: len(p.parts)):
            if path.is_dir():
                continue
            try:
                if self.mode is None:
                    path.mkdir(parents=True, exist_ok=True)
                else:
                    path.mkdir(mode=self.mode, parents=True, exist_ok=True)
            except OSError as e:
                raise translate_os_error(e, f"Creating directory {path}") from e
            created.append(str(path))
            log_provision(
                f"{ctx.symbols.get('success', '✅')} Created directory: {path}",
                "info",
                ctx.logger,
                ctx.config,
            )
        return StepResult.succeeded(
            self.name, message=f"created {len(created)} director{'y' if len(created) == 1 else 'ies'}"
        )

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["paths"] = [str(p) for p in self.paths]
        return data


@StepRegistry.register("set_permissions")
class SetPermissions(AlwaysApplyStep):
    """
    Assign owner, group and rights on a path.

    There is no natural precondition; ownership assignment is idempotent, so
    the step simply runs every time.
    """

    def __init__(
        self,
        name: str,
        path: Union[str, Path],
        principal: Optional[str] = None,
        rights: Optional[str] = None,
        group: Optional[str] = None,
        recursive: bool = False,
    ):
        super().__init__(name)
        self.path = Path(path)
        self.principal = principal
        self.rights = rights
        self.group = group
        self.recursive = recursive

    def apply(self, ctx: StepContext) -> StepResult:
        ctx.platform.set_owner_and_mode(
            self.path,
            self.principal,
            group=self.group,
            rights=self.rights,
            recursive=self.recursive,
        )
        owner = self.principal or ""
        if self.group:
            owner = f"{owner}:{self.group}"
        return StepResult.succeeded(
            self.name,
            message=f"{self.path} -> {owner or 'unchanged owner'} {self.rights or ''}".rstrip(),
        )

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["path"] = str(self.path)
        return data
