# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Script runner service.

Wires the repository, validator, temp storage, executors, history and
dispatcher together. Requests that are rejected (unknown script, invalid
parameters) fail synchronously; everything after queuing is asynchronous
and observable only through the history.
"""

import logging
from typing import Any, Dict, List, Optional

from scriptrunner.config import Config
from scriptrunner.errors import ScriptNotFoundError
from scriptrunner.execution import (
    CompositeScriptExecutor,
    DatabaseScriptExecutor,
    ExecutionDispatcher,
    ShellScriptExecutor,
)
from scriptrunner.history import HistoryStore, SqlHistoryStore
from scriptrunner.notify import Notifier
from scriptrunner.schemas import ExecutionContext, ExecutionRecord, ScriptMetadata
from scriptrunner.scripts import GitScriptRepository, validate_parameters
from scriptrunner.storage import TempScriptStorage

logger = logging.getLogger(__name__)


class ScriptRunnerService:
    """Facade used by the CLI (or any host) to list and run scripts."""

    def __init__(
        self,
        repository: GitScriptRepository,
        storage: TempScriptStorage,
        dispatcher: ExecutionDispatcher,
        history: HistoryStore,
    ):
        self.repository = repository
        self.storage = storage
        self.dispatcher = dispatcher
        self.history = history

    @classmethod
    def from_config(cls, config: Config, notifier: Optional[Notifier] = None) -> "ScriptRunnerService":
        storage = TempScriptStorage(config.resolved_temp_root)
        history = SqlHistoryStore(config.resolved_history_url)
        executor = CompositeScriptExecutor(
            shell=ShellScriptExecutor(config.execution, storage),
            database=DatabaseScriptExecutor(config.sql_connections, storage),
        )
        dispatcher = ExecutionDispatcher(
            executor,
            history,
            notifier=notifier,
            storage=storage,
            max_concurrent=config.execution.max_concurrent_executions,
            output_limit=config.execution.output_truncation_threshold,
        )
        return cls(GitScriptRepository(config.script_repo), storage, dispatcher, history)

    def list_scripts(self) -> List[ScriptMetadata]:
        return self.repository.list_scripts()

    def get_script(self, script_id: str) -> ScriptMetadata:
        metadata = self.repository.get_metadata(script_id)
        if metadata is None:
            raise ScriptNotFoundError(f"Script not found: {script_id}")
        return metadata

    def get_content(self, script_id: str) -> str:
        content = self.repository.get_content(script_id)
        if not content:
            raise ScriptNotFoundError(f"Content not found for script: {script_id}")
        return content

    def execute(self, script_id: str, parameters: Dict[str, Any], ran_by_user: str) -> str:
        """Validate, materialize and queue a script.

        Returns:
            Execution id; the outcome is read back from the history.

        Raises:
            ScriptNotFoundError: If the script or its content is unknown.
            ParameterValidationError: If parameters violate the contract.
        """
        metadata = self.get_script(script_id)
        validate_parameters(metadata, parameters)
        content = self.get_content(metadata.id)
        script_path = self.storage.write(content, metadata.extension)
        context = ExecutionContext(script_path=script_path, parameters=parameters)
        try:
            execution_id = self.dispatcher.submit(metadata, context, ran_by_user)
        except Exception:
            self.storage.delete(script_path)
            raise
        logger.info("Script %s submitted by %s executionId=%s", metadata.id, ran_by_user, execution_id)
        return execution_id

    def wait(self, execution_id: str, timeout: Optional[float] = None) -> Optional[ExecutionRecord]:
        return self.dispatcher.wait(execution_id, timeout)

    def cancel(self, execution_id: str) -> bool:
        return self.dispatcher.cancel(execution_id)

    def close(self, wait: bool = True) -> None:
        self.dispatcher.shutdown(wait=wait, cancel_pending=not wait)
