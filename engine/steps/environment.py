"""
Persistent environment variables (ORACLE_HOME, ORACLE_SID, PATH, ...).
"""

from typing import Any, Dict, Optional, Union

from common.command_utils import log_provision
from common.exceptions import ConfigurationError
from engine.base_step import BaseStep
from engine.context import StepContext
from engine.models import Principal, StepResult
from engine.registry import StepRegistry

SCOPES = ("machine", "user")


@StepRegistry.register("set_env_var")
class SetPersistentEnvVar(BaseStep):
    """Persist ``name=value`` for all users (machine) or one principal (user)."""

    def __init__(
        self,
        name: str,
        var_name: str,
        value: str,
        scope: str = "machine",
        principal: Optional[Principal] = None,
    ):
        super().__init__(name)
        if scope not in SCOPES:
            raise ConfigurationError(
                f"Environment scope must be one of {', '.join(SCOPES)}, got '{scope}'"
            )
        self.var_name = var_name
        self.value = str(value)
        self.scope = scope
        self.principal = principal

    @classmethod
    def from_params(
        cls,
        name: str,
        var_name: str,
        value: str,
        scope: str = "machine",
        principal: Optional[Union[Principal, Dict[str, Any], str]] = None,
    ) -> "SetPersistentEnvVar":
        if isinstance(principal, dict):
            principal = Principal(**principal)
        elif isinstance(principal, str):
            principal = Principal(name=principal)
        return cls(name, var_name, value, scope, principal)

    def check(self, ctx: StepContext) -> bool:
        current = ctx.platform.read_persistent_environment_variable(
            self.var_name, self.scope, self.principal
        )
        return current == self.value

    def apply(self, ctx: StepContext) -> StepResult:
        ctx.platform.persist_environment_variable(
            self.var_name, self.value, self.scope, self.principal
        )
        log_provision(
            f"{ctx.symbols.get('success', '✅')} Set {self.scope} variable {self.var_name}.",
            "info",
            ctx.logger,
            ctx.config,
        )
        return StepResult.succeeded(
            self.name, message=f"{self.var_name}={self.value}"
        )

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["variable"] = self.var_name
        data["scope"] = self.scope
        return data
