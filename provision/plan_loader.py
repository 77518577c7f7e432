# provision/plan_loader.py
# -*- coding: utf-8 -*-
"""
Load a step sequence declared in YAML.

A plan file holds a ``steps`` list; every entry names a registered step
kind and its parameters::

    steps:
      - name: Create install user
        kind: ensure_user
        params:
          principal: {name: "{install_user}", primary_group: oinstall}
      - name: Write listener.ora
        kind: render_template
        params:
          template_file: templates/listener.ora
          output_path: "{home_path}/network/admin/listener.ora"

String parameters may reference any ``InstallConfig.template_bindings()``
value by name. Template bodies (``template_text`` or the file named by
``template_file``) are not pre-rendered; ``render_template`` steps receive
the configuration bindings merged with their own ``bindings``.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import engine.steps  # noqa: F401  registers the built-in kinds
from common.exceptions import ConfigurationError, TemplateError
from engine.base_step import BaseStep
from engine.registry import StepRegistry
from engine.templating import render_template
from provision.config_loader import read_yaml_file
from provision.config_models import InstallConfig

module_logger = logging.getLogger(__name__)

RAW_PARAMS = ("template_text", "template_file", "bindings")


def _render_value(value: Any, bindings: Mapping[str, Any]) -> Any:
    if isinstance(value, str):
        return render_template(value, bindings)
    if isinstance(value, list):
        return [_render_value(item, bindings) for item in value]
    if isinstance(value, dict):
        return {key: _render_value(item, bindings) for key, item in value.items()}
    return value


def _prepare_params(
    kind: str,
    params: Dict[str, Any],
    bindings: Mapping[str, Any],
    base_dir: Path,
) -> Dict[str, Any]:
    prepared = {
        key: value if key in RAW_PARAMS else _render_value(value, bindings)
        for key, value in params.items()
    }
    if kind != "render_template":
        return prepared

    template_file = prepared.pop("template_file", None)
    if template_file is not None:
        if "template_text" in prepared:
            raise ConfigurationError(
                "Use either template_text or template_file, not both."
            )
        template_path = Path(template_file)
        if not template_path.is_absolute():
            template_path = base_dir / template_path
        try:
            prepared["template_text"] = template_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read template file {template_path}: {e}"
            ) from e
    merged = dict(bindings)
    merged.update(prepared.get("bindings") or {})
    prepared["bindings"] = merged
    return prepared


def build_steps(
    entries: List[Any],
    config: InstallConfig,
    base_dir: Optional[Path] = None,
) -> List[BaseStep]:
    """
    Instantiate the steps described by ``entries``.

    Raises:
        ConfigurationError: Malformed entry, unknown kind, invalid
            parameters or an unresolved placeholder.
    """
    bindings = config.template_bindings()
    base_dir = base_dir or Path.cwd()
    steps: List[BaseStep] = []
    seen_names = set()

    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Plan entry {index} is not a mapping.")
        kind = entry.get("kind")
        name = entry.get("name") or f"{kind} #{index}"
        if not kind:
            raise ConfigurationError(f"Plan entry {index} ('{name}') has no kind.")
        if name in seen_names:
            raise ConfigurationError(f"Duplicate step name '{name}' in plan.")
        seen_names.add(name)

        params = entry.get("params") or {}
        if not isinstance(params, dict):
            raise ConfigurationError(f"Parameters of step '{name}' must be a mapping.")
        try:
            prepared = _prepare_params(kind, params, bindings, base_dir)
        except TemplateError as e:
            raise ConfigurationError(f"Step '{name}': {e}") from e
        steps.append(StepRegistry.create(kind, name, **prepared))
    return steps


def load_plan(
    plan_path: Union[str, Path],
    config: InstallConfig,
    current_logger: Optional[logging.Logger] = None,
) -> List[BaseStep]:
    """Read ``plan_path`` and build its steps."""
    logger_to_use = current_logger if current_logger else module_logger
    plan_file = Path(plan_path)
    data = read_yaml_file(plan_file, logger_to_use, required=True)
    entries = data.get("steps")
    if not isinstance(entries, list) or not entries:
        raise ConfigurationError(f"Plan file {plan_file} has no 'steps' list.")
    steps = build_steps(entries, config, base_dir=plan_file.parent)
    logger_to_use.info(f"Loaded {len(steps)} step(s) from {plan_file}")
    return steps
