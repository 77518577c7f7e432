"""
Execution context handed to every step's ``check`` and ``apply``.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict

from provision.config_models import InstallConfig

if TYPE_CHECKING:
    from engine.platforms.base import PlatformAdapter


@dataclass(frozen=True)
class StepContext:
    config: InstallConfig
    platform: "PlatformAdapter"
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("engine")
    )
    cancel_event: threading.Event = field(default_factory=threading.Event)
    dry_run: bool = False

    @property
    def symbols(self) -> Dict[str, str]:
        return self.config.symbols

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()
