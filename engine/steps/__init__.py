"""
Built-in provisioning steps.

Importing this package registers every built-in step kind with
``engine.registry.StepRegistry``.
"""

from engine.steps.archive import ExtractArchive
from engine.steps.config_blocks import EnsureConfigBlock
from engine.steps.environment import SetPersistentEnvVar
from engine.steps.filesystem import EnsureDirectory, SetPermissions
from engine.steps.process import RunExternalProcess
from engine.steps.services import RegisterService
from engine.steps.swap import EnsureSwapFile
from engine.steps.templates import RenderTemplate
from engine.steps.users import EnsureUser

__all__ = [
    "EnsureConfigBlock",
    "EnsureDirectory",
    "EnsureSwapFile",
    "EnsureUser",
    "ExtractArchive",
    "RegisterService",
    "RenderTemplate",
    "RunExternalProcess",
    "SetPermissions",
    "SetPersistentEnvVar",
]
