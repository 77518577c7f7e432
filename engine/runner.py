"""
Sequential, fail-fast runner for provisioning steps.
"""

import logging
import threading
import time
from typing import List, Optional, Sequence

from common.command_utils import log_provision
from common.exceptions import (
    ConfigurationError,
    ProvisionError,
    StepCancelledError,
)
from common.file_utils import translate_os_error
from common.system_utils import get_os_name
from engine.base_step import BaseStep
from engine.context import StepContext
from engine.models import RunReport, StepResult, StepStatus, utc_now
from engine.platforms.base import PlatformAdapter
from provision.config_models import InstallConfig

module_logger = logging.getLogger(__name__)


class StepRunner:
    """
    Executes an ordered sequence of steps against one platform adapter.

    For each step the runner evaluates ``check``; a satisfied check yields a
    skipped result, otherwise ``apply`` is called. The first failed result
    stops the run. Cancellation is honoured between steps and passed to the
    steps through the context so long-running children can be stopped.
    """

    def __init__(
        self,
        platform: PlatformAdapter,
        config: InstallConfig,
        logger: Optional[logging.Logger] = None,
        cancel_event: Optional[threading.Event] = None,
        current_os: Optional[str] = None,
    ):
        """
        Args:
            platform: Adapter providing the OS primitives.
            config: Installation settings shared by all steps.
            logger: Optional logger; defaults to the module logger.
            cancel_event: Event that, once set, cancels the run.
            current_os: OS name to validate the adapter against; detected
                when omitted.

        Raises:
            ConfigurationError: The adapter does not serve the running OS.
        """
        detected_os = current_os or get_os_name()
        if not platform.matches_current_os(detected_os):
            raise ConfigurationError(
                f"{platform.__class__.__name__} cannot run on '{detected_os}' "
                f"(it targets '{platform.os_name}')."
            )
        self.platform = platform
        self.config = config
        self.logger = logger or module_logger
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        self.cancel_event.set()

    def _context(self, dry_run: bool) -> StepContext:
        return StepContext(
            config=self.config,
            platform=self.platform,
            logger=self.logger,
            cancel_event=self.cancel_event,
            dry_run=dry_run,
        )

    def _is_satisfied(self, step: BaseStep, ctx: StepContext) -> bool:
        try:
            return bool(step.check(ctx))
        except Exception as e:
            log_provision(
                f"Check for '{step.name}' raised {type(e).__name__}: {e}; treating as not satisfied.",
                "debug",
                self.logger,
                self.config,
            )
            return False

    def _apply(self, step: BaseStep, ctx: StepContext) -> StepResult:
        try:
            result = step.apply(ctx)
        except ProvisionError as e:
            return StepResult.failed(step.name, e)
        except OSError as e:
            return StepResult.failed(
                step.name, translate_os_error(e, f"Step '{step.name}'")
            )
        except Exception as e:
            log_provision(
                f"Unexpected error in step '{step.name}'",
                "error",
                self.logger,
                self.config,
                exc_info=True,
            )
            return StepResult.failed(step.name, e)

        if not isinstance(result, StepResult):
            return StepResult.failed(
                step.name,
                TypeError(
                    f"Step '{step.name}' returned {type(result).__name__}, expected StepResult"
                ),
            )
        if result.name != step.name:
            result = result.model_copy(update={"name": step.name})
        return result

    def run(self, steps: Sequence[BaseStep], dry_run: bool = False) -> RunReport:
        """
        Execute ``steps`` in order.

        Args:
            steps: The ordered steps.
            dry_run: Only evaluate checks; steps that would be applied are
                reported as succeeded with message "would apply".

        Returns:
            The finalized report. Its length equals the number of steps that
            were evaluated.
        """
        symbols = self.config.symbols
        ctx = self._context(dry_run)
        results: List[StepResult] = []
        started_at = utc_now()
        cancelled = False

        log_provision(
            f"{symbols.get('rocket', '🚀')} Provisioning started: {len(steps)} step(s){' (dry run)' if dry_run else ''}.",
            "info",
            self.logger,
            self.config,
        )

        for index, step in enumerate(steps, start=1):
            if self.cancel_event.is_set():
                log_provision(
                    f"{symbols.get('warning', '!')} Run cancelled before step {index} '{step.name}'.",
                    "warning",
                    self.logger,
                    self.config,
                )
                cancelled = True
                break

            log_provision(
                f"--- {symbols.get('step', '➡️')} Step {index}/{len(steps)}: {step.name} ---",
                "info",
                self.logger,
                self.config,
            )
            start = time.monotonic()

            if self._is_satisfied(step, ctx):
                result = StepResult.skipped(step.name)
                log_provision(
                    f"{symbols.get('skip', '⏭️')} '{step.name}' already satisfied; skipping.",
                    "info",
                    self.logger,
                    self.config,
                )
            elif dry_run:
                result = StepResult.succeeded(step.name, message="would apply")
                log_provision(
                    f"{symbols.get('info', 'ℹ️')} '{step.name}' would be applied.",
                    "info",
                    self.logger,
                    self.config,
                )
            else:
                result = self._apply(step, ctx)

            result = result.model_copy(
                update={"duration_seconds": round(time.monotonic() - start, 3)}
            )
            results.append(result)

            if result.status is StepStatus.FAILED:
                log_provision(
                    f"{symbols.get('error', '❌')} FAILED: {step.name}: {result.message}",
                    "error",
                    self.logger,
                    self.config,
                )
                if isinstance(result.error, StepCancelledError):
                    cancelled = True
                log_provision(
                    "A fatal error occurred. Halting the run.",
                    "error",
                    self.logger,
                    self.config,
                )
                break
            if result.status is StepStatus.SUCCEEDED and not dry_run:
                log_provision(
                    f"--- {symbols.get('success', '✅')} Completed: {step.name} ---",
                    "info",
                    self.logger,
                    self.config,
                )

        report = RunReport(
            results=tuple(results),
            started_at=started_at,
            finished_at=utc_now(),
            cancelled=cancelled,
            dry_run=dry_run,
        )
        level = "info" if report.succeeded else "error"
        log_provision(report.summary(), level, self.logger, self.config)
        return report
