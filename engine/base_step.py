"""
Base class for all provisioning steps.

A step is a named unit of work with an idempotency check and an apply
operation. The runner only calls ``apply`` after ``check`` returned False.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from engine.context import StepContext
from engine.models import StepResult


class BaseStep(ABC):
    """
    Base class for all provisioning steps.

    Subclasses implement ``check`` (read-only probe of OS state) and
    ``apply`` (the mutation). ``apply`` may either return a ``StepResult``
    or raise one of the ``common.exceptions`` errors; the runner converts a
    raised error into a failed result.
    """

    # Registry kind; set by ``StepRegistry.register``.
    kind: str = ""
    # Whether ``check`` can ever report the target state as satisfied.
    has_check: bool = True

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def check(self, ctx: StepContext) -> bool:
        """
        Return True when the step's target state already holds.

        Must not mutate anything.
        """

    @abstractmethod
    def apply(self, ctx: StepContext) -> StepResult:
        """Bring the system into the target state."""

    @classmethod
    def from_params(cls, name: str, **params: Any) -> "BaseStep":
        """Build the step from plain (YAML-decoded) parameters."""
        return cls(name=name, **params)

    def describe(self) -> Dict[str, Any]:
        """Short, secret-free description used by ``plan`` listings."""
        return {"name": self.name, "kind": self.kind or self.__class__.__name__}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class AlwaysApplyStep(BaseStep, ABC):
    """A step with no natural precondition; it runs on every invocation."""

    has_check = False

    def check(self, ctx: StepContext) -> bool:
        return False
