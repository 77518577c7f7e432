"""
Registry for step kinds.

Built-in steps register themselves with the ``StepRegistry.register``
decorator so that plans can be declared as data (see
``provision.plan_loader``) and instantiated by kind name.
"""

from typing import Any, Dict, Type

from common.exceptions import ConfigurationError
from engine.base_step import BaseStep


class StepRegistry:
    """
    Registry for step classes, keyed by kind name.
    """

    _registry: Dict[str, Type[BaseStep]] = {}

    @classmethod
    def register(cls, kind: str):
        """
        Decorator for registering step classes.

        Args:
            kind: The kind name used in plan files (e.g. "ensure_user").

        Returns:
            A decorator function that registers the step class.
        """

        def decorator(step_class: Type[BaseStep]) -> Type[BaseStep]:
            existing = cls._registry.get(kind)
            if existing is not None and existing is not step_class:
                raise ValueError(f"Step kind '{kind}' already registered")
            step_class.kind = kind
            cls._registry[kind] = step_class
            return step_class

        return decorator

    @classmethod
    def get_step_class(cls, kind: str) -> Type[BaseStep]:
        """
        Get a step class by kind.

        Raises:
            ConfigurationError: If no step with the given kind is registered.
        """
        if kind not in cls._registry:
            known = ", ".join(sorted(cls._registry)) or "none"
            raise ConfigurationError(
                f"Unknown step kind '{kind}'. Known kinds: {known}"
            )
        return cls._registry[kind]

    @classmethod
    def get_all_step_classes(cls) -> Dict[str, Type[BaseStep]]:
        return cls._registry.copy()

    @classmethod
    def create(cls, kind: str, name: str, **params: Any) -> BaseStep:
        """
        Instantiate a registered step.

        Raises:
            ConfigurationError: Unknown kind or parameters the step rejects.
        """
        step_class = cls.get_step_class(kind)
        try:
            return step_class.from_params(name, **params)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid parameters for step '{name}' ({kind}): {e}"
            ) from e
