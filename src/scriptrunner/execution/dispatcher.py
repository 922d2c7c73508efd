# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Execution dispatcher.

Turns a validated request into a running, then terminal, job.

ARCHITECTURE
    ExecutionDispatcher(max_concurrent=2)
      ├── .submit(metadata, context, user) ─ store Queued record, enqueue
      ├── worker (one of N pool threads)    ─ Running → executor → terminal
      ├── .cancel(execution_id)             ─ drop queued / signal running
      ├── .wait(execution_id)               ─ block until terminal
      └── .shutdown()                       ─ drain or abandon the pool

The pool's worker count is the admission gate: at most N executor calls are
in flight, and queued jobs are admitted in submission order.
"""

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from scriptrunner.history import HistoryStore
from scriptrunner.notify import Notifier, NullNotifier
from scriptrunner.schemas import (
    ExecutionContext,
    ExecutionRecord,
    ExecutionResult,
    ExecutionStatus,
    ScriptMetadata,
)
from scriptrunner.storage import TempScriptStorage

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n...[truncated]"


class ScriptExecutor(Protocol):
    def execute(
        self,
        metadata: ScriptMetadata,
        context: ExecutionContext,
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionResult: ...


def truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + TRUNCATION_MARKER


def serialize_parameters(parameters: Dict[str, Any]) -> str:
    """JSON form of a parameter bag; non-JSON values use their text form."""
    return json.dumps(parameters, default=str, sort_keys=True)


@dataclass
class _Job:
    record: ExecutionRecord
    metadata: ScriptMetadata
    context: ExecutionContext
    cancel: threading.Event = field(default_factory=threading.Event)
    future: Optional[Future] = None
    done: threading.Event = field(default_factory=threading.Event)


class ExecutionDispatcher:
    """Bounded, asynchronous script execution with recorded lifecycle."""

    def __init__(
        self,
        executor: ScriptExecutor,
        history: HistoryStore,
        notifier: Optional[Notifier] = None,
        storage: Optional[TempScriptStorage] = None,
        max_concurrent: int = 2,
        output_limit: int = 10000,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.executor = executor
        self.history = history
        self.notifier = notifier or NullNotifier()
        self.storage = storage
        self.max_concurrent = max_concurrent
        self.output_limit = output_limit
        self.pool = ThreadPoolExecutor(max_workers=max_concurrent, thread_name_prefix="scriptrunner")
        self._jobs: Dict[str, _Job] = {}
        self._lock = threading.Lock()
        self._in_flight = 0
        self._closed = False

    @property
    def in_flight(self) -> int:
        """Number of executor invocations currently running."""
        with self._lock:
            return self._in_flight

    def submit(self, metadata: ScriptMetadata, context: ExecutionContext, ran_by_user: str) -> str:
        """Queue an execution and return its id immediately.

        The Queued record is stored before this returns.

        Raises:
            RuntimeError: If the dispatcher has been shut down.
        """
        if self._closed:
            raise RuntimeError("dispatcher is shut down")

        record = ExecutionRecord(
            script_id=metadata.id,
            script_name=metadata.name,
            ran_by_user=ran_by_user,
            parameters_json=serialize_parameters(context.parameters),
        )
        self.history.store(record)
        job = _Job(record=record, metadata=metadata, context=context)
        with self._lock:
            self._jobs[record.execution_id] = job
        job.future = self.pool.submit(self._run, job)
        logger.info("[Dispatch] Script %s queued executionId=%s", metadata.id, record.execution_id)
        return record.execution_id

    def _save(self, job: _Job, record: ExecutionRecord) -> None:
        job.record = record
        self.history.update(record)

    def _run(self, job: _Job) -> ExecutionRecord:
        execution_id = job.record.execution_id
        reached_executor = False
        with self._lock:
            self._in_flight += 1
        try:
            if job.cancel.is_set():
                self._abandon(job, "Cancelled before start")
                return job.record

            self._save(job, job.record.advance(ExecutionStatus.RUNNING))
            logger.debug("[Dispatch] Script %s now Running executionId=%s", job.metadata.id, execution_id)

            reached_executor = True
            try:
                result = self.executor.execute(job.metadata, job.context, job.cancel)
            except Exception as e:
                logger.exception("[Dispatch] Script %s failed executionId=%s", job.metadata.id, execution_id)
                self._save(job, job.record.advance(
                    ExecutionStatus.FAILED, exit_code=-1, stdout="", stderr=str(e)
                ))
                return job.record

            self._save(job, job.record.advance(
                result.status,
                exit_code=result.exit_code,
                stdout=truncate(result.stdout, self.output_limit),
                stderr=truncate(result.stderr, self.output_limit),
            ))
            logger.info(
                "[Dispatch] Script %s finished status=%s executionId=%s",
                job.metadata.id,
                result.status.value,
                execution_id,
            )
            if job.record.status.is_terminal:
                self._notify(job)
            return job.record
        except Exception as e:
            logger.exception("[Dispatch] Unexpected failure executionId=%s", execution_id)
            self._fail(job, str(e), delete_script=not reached_executor)
            return job.record
        finally:
            with self._lock:
                self._in_flight -= 1
            self._finish(job)

    def _notify(self, job: _Job) -> None:
        try:
            sent = self.notifier.send_results(job.record)
        except Exception:
            logger.exception("[Dispatch] Notification failed executionId=%s", job.record.execution_id)
            return
        if sent:
            self._save(job, job.record.advance(job.record.status, email_sent=True))
            logger.info("[Dispatch] Notification sent executionId=%s", job.record.execution_id)

    def _fail(self, job: _Job, message: str, delete_script: bool) -> None:
        """Record a job as Failed, or re-save it if it already finished.

        Never raises. The temp script is deleted only when no executor owns it.
        """
        record = job.record
        if not record.status.is_terminal:
            record = record.advance(ExecutionStatus.FAILED, exit_code=-1, stderr=message)
        try:
            self._save(job, record)
        except Exception:
            logger.exception("[Dispatch] Could not record failure executionId=%s", record.execution_id)
        finally:
            if delete_script and self.storage is not None:
                self.storage.delete(job.context.script_path)

    def _finish(self, job: _Job) -> None:
        """Release a job; its final record stays readable through the history."""
        with self._lock:
            self._jobs.pop(job.record.execution_id, None)
        job.done.set()

    def _abandon(self, job: _Job, reason: str) -> None:
        """Finish a job that never reached the executor."""
        self._fail(job, reason, delete_script=True)
        logger.info("[Dispatch] Execution %s abandoned: %s", job.record.execution_id, reason)

    def cancel(self, execution_id: str) -> bool:
        """Cancel a queued or running execution.

        A queued job is recorded as Failed without running. A running job is
        signalled; its executor kills the process or rolls back and reports
        Failed.

        Returns:
            True if the execution was found and not yet finished.
        """
        with self._lock:
            job = self._jobs.get(execution_id)
        if job is None or job.done.is_set():
            return False

        job.cancel.set()
        if job.future is not None and job.future.cancel():
            self._abandon(job, "Cancelled before start")
            self._finish(job)
        logger.info("[Dispatch] Cancellation requested executionId=%s", execution_id)
        return True

    def wait(self, execution_id: str, timeout: Optional[float] = None) -> Optional[ExecutionRecord]:
        """Block until the execution is finished and return its final record.

        Finished jobs are read back from the history. Returns None for unknown
        ids or when ``timeout`` elapses first.
        """
        with self._lock:
            job = self._jobs.get(execution_id)
        if job is None:
            record = self.history.get(execution_id)
            if record is not None and record.status.is_terminal:
                return record
            return None
        if not job.done.wait(timeout):
            return None
        return job.record

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """Stop accepting work.

        Args:
            wait: Block until admitted jobs finish.
            cancel_pending: Cancel every unfinished job first.
        """
        self._closed = True
        if cancel_pending:
            with self._lock:
                ids = [eid for eid, job in self._jobs.items() if not job.done.is_set()]
            for execution_id in ids:
                self.cancel(execution_id)
        self.pool.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
