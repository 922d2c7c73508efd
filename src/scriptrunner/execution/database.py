# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Database executor.

Runs a ``.sql`` script against a SQLAlchemy URL inside one transaction.

Known limitations, kept on purpose:
- ``$(Name)`` / ``{{Name}}`` substitution inserts raw text, with no escaping.
- Statements are split on ``;`` followed by a newline without regard to
  quoting, so a literal containing ``;\\n`` is split in two.
"""

import logging
import re
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import create_engine

from scriptrunner.errors import ExecutionCancelled
from scriptrunner.schemas import ExecutionContext, ExecutionResult, ExecutionStatus, ScriptMetadata
from scriptrunner.storage import TempScriptStorage

logger = logging.getLogger(__name__)

# The semicolon stays with its statement; only the line break is consumed
STATEMENT_SEPARATOR = re.compile(r"(?<=;)\s*\n")


def substitute_tokens(content: str, parameters: Mapping[str, Any]) -> str:
    """Replace ``$(Name)`` and ``{{Name}}`` with the parameter's text."""
    for key, value in parameters.items():
        text = "" if value is None else str(value)
        content = content.replace(f"$({key})", text).replace(f"{{{{{key}}}}}", text)
    return content


def split_statements(script: str) -> List[str]:
    """Split after ``;`` + newline. Blank pieces are dropped; quote-unaware."""
    return [part.strip() for part in STATEMENT_SEPARATOR.split(script) if part.strip()]


def _snippet(statement: str, limit: int = 120) -> str:
    return statement if len(statement) <= limit else statement[:limit] + "..."


class DatabaseScriptExecutor:
    """Runs ``.sql`` scripts transactionally."""

    def __init__(self, connections: Dict[str, str], storage: TempScriptStorage):
        self.connections = connections
        self.storage = storage

    def resolve_connection(self, metadata: ScriptMetadata) -> Optional[str]:
        """Script connection string, else the first configured connection."""
        if metadata.sql_connection_string and metadata.sql_connection_string.strip():
            return metadata.sql_connection_string
        return next(iter(self.connections.values()), None)

    def execute(
        self,
        metadata: ScriptMetadata,
        context: ExecutionContext,
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        """Execute every statement, committing only if all succeed.

        Never raises; any failure rolls back and yields a Failed result.
        """
        script_path = Path(context.script_path)
        engine = None
        try:
            content = script_path.read_text(encoding="utf-8")
            replaced = substitute_tokens(content, context.parameters)

            url = self.resolve_connection(metadata)
            if not url:
                return ExecutionResult.failure("Connection string missing")

            logger.info("[SQL] Beginning execution for script %s", metadata.id)
            engine = create_engine(url)
            lines = []
            # begin() commits on clean exit and rolls back on any exception
            with engine.begin() as conn:
                for statement in split_statements(replaced):
                    if cancel is not None and cancel.is_set():
                        raise ExecutionCancelled("Execution cancelled")
                    result = conn.exec_driver_sql(statement)
                    lines.append(f"[OK] {result.rowcount} rows affected")
                    logger.debug(
                        "[SQL] Statement executed rowsAffected=%s snippet=%s",
                        result.rowcount,
                        _snippet(statement),
                    )
            logger.info("[SQL] Transaction committed for script %s", metadata.id)
            return ExecutionResult(
                exit_code=0,
                stdout="\n".join(lines),
                stderr="",
                status=ExecutionStatus.SUCCEEDED,
            )
        except Exception as e:
            logger.error("[SQL] SQL execution failed for script %s: %s", metadata.id, e)
            return ExecutionResult.failure(str(e))
        finally:
            if engine is not None:
                engine.dispose()
            self.storage.delete(script_path)
