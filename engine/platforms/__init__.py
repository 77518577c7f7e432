"""
Platform adapters and adapter selection.
"""

import logging
from typing import Dict, Optional, Type

from common.exceptions import ConfigurationError
from common.system_utils import get_os_name
from engine.platforms.base import PlatformAdapter
from engine.platforms.linux import LinuxPlatformAdapter
from engine.platforms.windows import WindowsPlatformAdapter
from provision.config_models import InstallConfig

ADAPTERS: Dict[str, Type[PlatformAdapter]] = {
    "linux": LinuxPlatformAdapter,
    "windows": WindowsPlatformAdapter,
}


def select_platform_adapter(
    name: Optional[str] = None,
    config: Optional[InstallConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> PlatformAdapter:
    """
    Return the adapter for ``name``, the configured platform, or the running OS.

    Raises:
        ConfigurationError: No adapter exists for the requested platform.
    """
    chosen = (name or (config.platform if config else None) or get_os_name()).lower()
    adapter_class = ADAPTERS.get(chosen)
    if adapter_class is None:
        raise ConfigurationError(
            f"No platform adapter for '{chosen}'. Supported: {', '.join(sorted(ADAPTERS))}"
        )
    return adapter_class(config=config, logger=logger)


__all__ = [
    "ADAPTERS",
    "LinuxPlatformAdapter",
    "PlatformAdapter",
    "WindowsPlatformAdapter",
    "select_platform_adapter",
]
