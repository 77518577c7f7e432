"""
Service account creation.
"""

import re
from typing import Any, Dict, Optional, Union

from common.command_utils import log_provision
from common.exceptions import ValidationError
from engine.base_step import BaseStep
from engine.context import StepContext
from engine.models import Principal, StepResult
from engine.registry import StepRegistry
from provision import config as static_config


def validate_password(
    principal: Principal,
    min_length: int = static_config.PASSWORD_MIN_LENGTH,
) -> None:
    """
    Reject passwords that fail the basic policy: minimum length, at least
    one letter and one digit, and not containing the account name.

    Raises:
        ValidationError: The password does not satisfy the policy.
    """
    password = principal.password
    if password is None:
        return
    problems = []
    if len(password) < min_length:
        problems.append(f"shorter than {min_length} characters")
    if not re.search(r"[A-Za-z]", password):
        problems.append("contains no letter")
    if not re.search(r"\d", password):
        problems.append("contains no digit")
    if principal.name.lower() in password.lower():
        problems.append("contains the account name")
    if problems:
        raise ValidationError(
            f"Password for '{principal.name}' rejected: {', '.join(problems)}."
        )


@StepRegistry.register("ensure_user")
class EnsureUser(BaseStep):
    """Create a service account with its groups if it does not exist yet."""

    def __init__(
        self,
        name: str,
        principal: Principal,
        min_password_length: int = static_config.PASSWORD_MIN_LENGTH,
    ):
        super().__init__(name)
        self.principal = principal
        self.min_password_length = min_password_length

    @classmethod
    def from_params(
        cls,
        name: str,
        principal: Union[Principal, Dict[str, Any]],
        min_password_length: Optional[int] = None,
    ) -> "EnsureUser":
        if isinstance(principal, dict):
            principal = Principal(**principal)
        return cls(
            name,
            principal,
            min_password_length or static_config.PASSWORD_MIN_LENGTH,
        )

    def check(self, ctx: StepContext) -> bool:
        return ctx.platform.principal_exists(self.principal.name)

    def apply(self, ctx: StepContext) -> StepResult:
        if ctx.config.dev_override_unsafe_password:
            log_provision(
                f"{ctx.symbols.get('warning', '!')} Password policy not enforced for '{self.principal.name}' (dev override).",
                "warning",
                ctx.logger,
                ctx.config,
            )
        else:
            validate_password(self.principal, self.min_password_length)
        ctx.platform.create_principal(self.principal)
        groups = ", ".join(self.principal.all_groups) or "none"
        log_provision(
            f"{ctx.symbols.get('success', '✅')} Created account '{self.principal.name}' (groups: {groups}).",
            "info",
            ctx.logger,
            ctx.config,
        )
        return StepResult.succeeded(
            self.name, message=f"created {self.principal.name}"
        )

    def describe(self) -> Dict[str, Any]:
        data = super().describe()
        data["principal"] = self.principal.name
        return data
