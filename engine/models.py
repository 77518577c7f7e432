"""
Value types threaded through every provisioning step.

``StepResult`` and ``RunReport`` are frozen once produced. ``Principal`` and
``ServiceDefinition`` describe OS objects handed to the platform adapter.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StepResult(BaseModel):
    """Outcome of one step. Immutable once produced."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    status: StepStatus
    error: Optional[BaseException] = None
    exit_code: Optional[int] = None
    message: str = ""
    timestamp: datetime = Field(default_factory=utc_now)
    duration_seconds: float = 0.0

    @classmethod
    def skipped(cls, name: str, message: str = "already satisfied") -> "StepResult":
        return cls(name=name, status=StepStatus.SKIPPED, message=message)

    @classmethod
    def succeeded(
        cls, name: str, message: str = "", exit_code: Optional[int] = None
    ) -> "StepResult":
        return cls(
            name=name,
            status=StepStatus.SUCCEEDED,
            message=message,
            exit_code=exit_code,
        )

    @classmethod
    def failed(
        cls,
        name: str,
        error: Optional[BaseException] = None,
        message: str = "",
        exit_code: Optional[int] = None,
    ) -> "StepResult":
        return cls(
            name=name,
            status=StepStatus.FAILED,
            error=error,
            message=message or (str(error) if error else ""),
            exit_code=exit_code,
        )

    @property
    def is_failed(self) -> bool:
        return self.status is StepStatus.FAILED

    @property
    def error_type(self) -> Optional[str]:
        return type(self.error).__name__ if self.error else None

    @field_serializer("error")
    def _serialize_error(self, error: Optional[BaseException]) -> Optional[Dict[str, str]]:
        if error is None:
            return None
        return {"type": type(error).__name__, "message": str(error)}


class RunReport(BaseModel):
    """
    Ordered results of one runner invocation.

    Built by the runner when the run finishes; never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    results: Tuple[StepResult, ...] = ()
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime = Field(default_factory=utc_now)
    cancelled: bool = False
    dry_run: bool = False

    def __len__(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> bool:
        """True when no step failed and the run was not cancelled."""
        return not self.cancelled and self.failed_result is None

    @property
    def failed_result(self) -> Optional[StepResult]:
        for result in self.results:
            if result.is_failed:
                return result
        return None

    @property
    def error(self) -> Optional[BaseException]:
        failed = self.failed_result
        return failed.error if failed else None

    @property
    def statuses(self) -> List[StepStatus]:
        return [result.status for result in self.results]

    def counts(self) -> Dict[str, int]:
        totals = {status.value: 0 for status in StepStatus}
        for result in self.results:
            totals[result.status.value] += 1
        return totals

    def summary(self) -> str:
        counts = self.counts()
        state = (
            "cancelled"
            if self.cancelled
            else ("succeeded" if self.succeeded else "failed")
        )
        text = (
            f"Run {state}: {len(self.results)} step(s) executed "
            f"({counts['succeeded']} succeeded, {counts['skipped']} skipped, "
            f"{counts['failed']} failed)."
        )
        failed = self.failed_result
        if failed is not None:
            text += f" Failing step: '{failed.name}' ({failed.error_type or 'exit code'}): {failed.message}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["succeeded"] = self.succeeded
        return data

    def write_json(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")


class Principal(BaseModel):
    """An OS account, optionally with the credentials needed to create it."""

    model_config = ConfigDict(frozen=True)

    name: str
    password: Optional[str] = Field(default=None, exclude=True, repr=False)
    primary_group: Optional[str] = None
    groups: Tuple[str, ...] = ()
    home: Optional[Path] = None
    shell: Optional[str] = None

    @property
    def all_groups(self) -> Tuple[str, ...]:
        ordered = [self.primary_group] if self.primary_group else []
        ordered.extend(g for g in self.groups if g not in ordered)
        return tuple(ordered)


class ServiceDefinition(BaseModel):
    """An auto-start service to register with the OS service manager."""

    model_config = ConfigDict(frozen=True)

    name: str
    start_command: str
    stop_command: Optional[str] = None
    description: str = ""
    run_as: Optional[Principal] = None
    environment: Dict[str, str] = Field(default_factory=dict)
    service_type: str = "forking"
