# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Execution schemas.

Lifecycle of one request:
- ExecutionContext (script path + validated parameters) → executor
- executor → ExecutionResult (terminal status only)
- dispatcher drives ExecutionRecord: Queued → Running → Succeeded | Failed
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


class ExecutionStatus(Enum):
    """Execution state machine. Order of declaration is the only legal order."""

    QUEUED = "Queued"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.SUCCEEDED, ExecutionStatus.FAILED)

    @property
    def rank(self) -> int:
        return 2 if self.is_terminal else list(ExecutionStatus).index(self)


@dataclass
class ExecutionContext:
    """Execution-scoped inputs handed to an executor."""
    script_path: Optional[Path]
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one execution attempt. Output is never truncated here."""
    exit_code: int
    stdout: str
    stderr: str
    status: ExecutionStatus

    @classmethod
    def failure(cls, message: str, stdout: str = "") -> "ExecutionResult":
        return cls(exit_code=-1, stdout=stdout, stderr=message, status=ExecutionStatus.FAILED)


class InvalidTransitionError(ValueError):
    """Raised when a record would move backwards in its lifecycle."""

    pass


@dataclass(frozen=True)
class ExecutionRecord:
    """Persistent view of one execution, progressively updated."""
    script_id: str
    script_name: str
    ran_by_user: str
    execution_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None
    parameters_json: str = "{}"
    status: ExecutionStatus = ExecutionStatus.QUEUED
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    email_sent: bool = False

    def advance(self, status: ExecutionStatus, **changes: Any) -> "ExecutionRecord":
        """Return a copy moved to ``status``.

        Raises:
            InvalidTransitionError: If the move would leave a terminal state
                or go back to an earlier one.
        """
        if self.status.is_terminal and status != self.status:
            raise InvalidTransitionError(
                f"execution {self.execution_id} is already {self.status.value}"
            )
        if status.rank < self.status.rank:
            raise InvalidTransitionError(
                f"execution {self.execution_id} cannot go from "
                f"{self.status.value} to {status.value}"
            )
        if status.is_terminal and self.finished_at is None and "finished_at" not in changes:
            changes["finished_at"] = _utcnow()
        return replace(self, status=status, **changes)
