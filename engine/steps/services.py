"""
Auto-start service registration.
"""

from typing import Any, Dict, Union

from common.command_utils import log_provision
from engine.base_step import BaseStep
from engine.context import StepContext
from engine.models import ServiceDefinition, StepResult
from engine.registry import StepRegistry


@StepRegistry.register("register_service")
class RegisterService(BaseStep):
    def __init__(self, name: str, definition: ServiceDefinition):
        super().__init__(name)
        self.definition = definition

    @classmethod
    def from_params(
        cls, name: str, definition: Union[ServiceDefinition, Dict[str, Any]]
    ) -> "RegisterService":
        if isinstance(definition, dict):
            definition = ServiceDefinition(**definition)
        return cls(name, definition)

    def check(self, ctx: StepContext) -> bool:
        return ctx.platform.is_service_registered(self.definition.name)

    def apply(self, ctx: StepContext) -> StepResult:
        ctx.platform.install_service_definition(self.definition)
        log_provision(
            f"{ctx.symbols.get('success', '✅')} Service '{self.definition.name}' registered for automatic start.",
            "info",
            ctx.logger,
            ctx.config,
        )
        return StepResult.succeeded(
            self.name, message=f"registered {self.definition.name}"
        )

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["service"] = self.definition.name
        return data
