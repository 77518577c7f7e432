# provision/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the provisioner.

Handles loading settings from Pydantic model defaults, environment variables,
a YAML file and command-line arguments, applying this order of precedence:
1. Pydantic Model Defaults
2. Environment Variables (``DBPROV_`` prefix, ``__`` for nested fields)
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from common.exceptions import ConfigurationError
from provision import config as static_config
from provision.config_models import InstallConfig

module_logger = logging.getLogger(__name__)

# CLI destination -> dotted path inside InstallConfig.
CLI_FIELD_MAP: Dict[str, str] = {
    "platform": "platform",
    "timeout": "process_timeout",
    "install_source": "install_source",
    "archive_filename": "archive_filename",
    "base_path": "base_path",
    "home_path": "home_path",
    "inventory_path": "inventory_path",
    "hostname": "hostname",
    "log_prefix": "log_prefix",
    "dev_override_unsafe_password": "dev_override_unsafe_password",
    "install_user": "account.user",
    "install_password": "account.password",
    "sid": "database.sid",
    "pdb_name": "database.pdb_name",
    "sys_password": "database.sys_password",
    "system_password": "database.system_password",
    "dbsnmp_password": "database.dbsnmp_password",
}


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively update ``source`` with ``overrides``. Nested dictionaries are
    merged; ``None`` values in ``overrides`` never replace existing values.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
    return source


def _set_dotted(target: Dict[str, Any], dotted_key: str, value: Any) -> None:
    parts = dotted_key.split(".")
    node = target
    for part in parts[:-1]:
        node = node.setdefault(part, {})
    node[parts[-1]] = value


def read_yaml_file(
    config_file_path: Union[str, Path],
    current_logger: Optional[logging.Logger] = None,
    required: bool = False,
) -> Dict[str, Any]:
    """
    Read a YAML mapping from ``config_file_path``.

    Returns an empty dict when the file does not exist and ``required`` is
    False.

    Raises:
        ConfigurationError: The file is missing (when required), unreadable,
            not valid YAML or not a mapping.
    """
    logger_to_use = current_logger if current_logger else module_logger
    yaml_config_path = Path(config_file_path)

    if not yaml_config_path.is_file():
        if required:
            raise ConfigurationError(
                f"Configuration file '{yaml_config_path}' not found."
            )
        logger_to_use.info(
            f"Configuration file '{yaml_config_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}

    try:
        with open(yaml_config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Could not parse YAML file '{yaml_config_path}': {e}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Could not read YAML file '{yaml_config_path}': {e}"
        ) from e

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        raise ConfigurationError(
            f"File '{yaml_config_path}' does not contain a YAML dictionary."
        )
    logger_to_use.info(f"Loaded configuration from {yaml_config_path}")
    return yaml_data


def cli_overrides(cli_args: Optional[argparse.Namespace]) -> Dict[str, Any]:
    """Map parsed CLI arguments onto the nested InstallConfig structure."""
    overrides: Dict[str, Any] = {}
    if cli_args is None:
        return overrides
    for cli_key, cli_value in vars(cli_args).items():
        if cli_value is None or cli_key not in CLI_FIELD_MAP:
            continue
        if cli_key == "dev_override_unsafe_password" and cli_value is False:
            continue
        _set_dotted(overrides, CLI_FIELD_MAP[cli_key], cli_value)
    return overrides


def load_install_config(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Optional[Union[str, Path]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> InstallConfig:
    """
    Build the immutable ``InstallConfig``.

    Environment variables are read by pydantic-settings; values passed to the
    constructor (YAML merged with CLI) take precedence over them.

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: YAML configuration file. An explicitly given path
            must exist; without one, ``config.yaml`` in the working directory
            is used if present.
        current_logger: Optional logger to use instead of the module logger.

    Raises:
        ConfigurationError: Unreadable configuration or failed validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if config_file_path is not None:
        values = read_yaml_file(config_file_path, logger_to_use, required=True)
    else:
        values = read_yaml_file(Path.cwd() / static_config.DEFAULT_CONFIG_FILE, logger_to_use)

    values = _deep_update(values, cli_overrides(cli_args))

    try:
        final_settings = InstallConfig(**values)
    except PydanticValidationError as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger_to_use.debug("Successfully loaded and validated install settings")
    return final_settings
