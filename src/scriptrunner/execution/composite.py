# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Composite executor: routes a script to the executor for its kind."""

import logging
import threading
from typing import Optional

from scriptrunner.execution.database import DatabaseScriptExecutor
from scriptrunner.execution.shell import ShellScriptExecutor
from scriptrunner.schemas import ExecutionContext, ExecutionResult, ScriptMetadata

logger = logging.getLogger(__name__)


class CompositeScriptExecutor:
    """Database scripts go to the database executor, the rest to PowerShell."""

    def __init__(self, shell: ShellScriptExecutor, database: DatabaseScriptExecutor):
        self.shell = shell
        self.database = database

    def execute(
        self,
        metadata: ScriptMetadata,
        context: ExecutionContext,
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        if not context.script_path or not str(context.script_path).strip():
            logger.error("Temp path missing for script %s", metadata.id)
            return ExecutionResult.failure("Temp path missing")
        if metadata.is_database_script:
            return self.database.execute(metadata, context, cancel)
        return self.shell.execute(metadata, context, cancel)
