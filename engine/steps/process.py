"""
Synchronous execution of external installer programs.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from common.command_utils import log_provision, run_supervised_command
from engine.base_step import BaseStep
from engine.context import StepContext
from engine.models import Principal, StepResult
from engine.registry import StepRegistry


@StepRegistry.register("run_process")
class RunExternalProcess(BaseStep):
    """
    Run ``executable`` with ``args`` and wait for it to exit.

    Exit code 0 is success; any other code fails the step and is carried
    verbatim in the result. Without ``creates`` the step has no precondition
    and runs every time; with it, the existence of that path means the
    program already ran.
    """

    def __init__(
        self,
        name: str,
        executable: Union[str, Path],
        args: Optional[Sequence[str]] = None,
        run_as: Optional[Principal] = None,
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Union[str, Path]] = None,
        timeout: Optional[float] = None,
        creates: Optional[Union[str, Path]] = None,
        log_file: Optional[Union[str, Path]] = None,
    ):
        super().__init__(name)
        self.executable = str(executable)
        self.args: List[str] = [str(arg) for arg in (args or [])]
        self.run_as = run_as
        self.env: Dict[str, str] = {k: str(v) for k, v in (env or {}).items()}
        self.cwd = Path(cwd) if cwd else None
        self.timeout = timeout
        self.creates = Path(creates) if creates else None
        self.log_file = Path(log_file) if log_file else None
        self.has_check = self.creates is not None

    @classmethod
    def from_params(cls, name: str, **params: Any) -> "RunExternalProcess":
        run_as = params.get("run_as")
        if isinstance(run_as, dict):
            params["run_as"] = Principal(**run_as)
        elif isinstance(run_as, str):
            params["run_as"] = Principal(name=run_as)
        return cls(name=name, **params)

    @property
    def command(self) -> List[str]:
        return [self.executable, *self.args]

    def check(self, ctx: StepContext) -> bool:
        return self.creates is not None and self.creates.exists()

    def _effective_command(self, ctx: StepContext) -> List[str]:
        if self.run_as is None:
            return self.command
        return ctx.platform.wrap_command_for_principal(
            self.command, self.run_as, env=self.env or None
        )

    def _effective_env(self) -> Optional[Dict[str, str]]:
        if not self.env or self.run_as is not None:
            # Impersonation wrappers carry the variables themselves.
            return None
        merged = dict(os.environ)
        merged.update(self.env)
        return merged

    def apply(self, ctx: StepContext) -> StepResult:
        timeout = self.timeout if self.timeout is not None else ctx.config.process_timeout
        return_code = run_supervised_command(
            self._effective_command(ctx),
            ctx.config,
            timeout=timeout,
            cancel_event=ctx.cancel_event,
            current_logger=ctx.logger,
            cwd=str(self.cwd) if self.cwd else None,
            env=self._effective_env(),
            log_file=self.log_file,
        )
        if return_code != 0:
            return StepResult.failed(
                self.name,
                message=f"{self.executable} exited with code {return_code}",
                exit_code=return_code,
            )
        log_provision(
            f"{ctx.symbols.get('success', '✅')} {Path(self.executable).name} completed.",
            "info",
            ctx.logger,
            ctx.config,
        )
        return StepResult.succeeded(self.name, exit_code=return_code)

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["command"] = " ".join(self.command)
        if self.run_as is not None:
            data["run_as"] = self.run_as.name
        return data
