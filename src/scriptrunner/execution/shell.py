# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
PowerShell executor.

Builds a single inlined invocation expression, ``& '<path>' -Name 'value'``,
and runs it through a non-interactive interpreter with profiles disabled
and execution policy bypassed.
"""

import logging
import os
import shutil
import threading
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Mapping, Optional

from scriptrunner.config import ExecutionConfig
from scriptrunner.errors import ExecutionCancelled, InterpreterNotFoundError
from scriptrunner.process import IS_WINDOWS, ProcessRunner
from scriptrunner.schemas import (
    INTERNAL_PREFIX,
    ExecutionContext,
    ExecutionResult,
    ExecutionStatus,
    ParameterType,
    ScriptMetadata,
)
from scriptrunner.storage import TempScriptStorage

logger = logging.getLogger(__name__)


def quote(value: str) -> str:
    """Single-quote for PowerShell; embedded quotes are doubled."""
    return "'" + value.replace("'", "''") + "'"


def _number_text(value: Any) -> str:
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def format_argument(name: str, value: Any, type_: ParameterType) -> str:
    """Render one ``-Name value`` pair."""
    if type_ == ParameterType.BOOL:
        if isinstance(value, bool):
            flag = value
        else:
            flag = str(value).strip().lower() == "true"
        return f"-{name}:{'$true' if flag else '$false'}"
    if type_ in (ParameterType.INT, ParameterType.DECIMAL):
        return f"-{name} {_number_text(value)}"
    if type_ == ParameterType.DATETIME:
        text = value.isoformat() if isinstance(value, (datetime, date)) else str(value)
        return f"-{name} {quote(text)}"
    return f"-{name} {quote('' if value is None else str(value))}"


def build_invocation(script_path: Path, metadata: ScriptMetadata, parameters: Mapping[str, Any]) -> str:
    """Build the ``& '<path>' -A x -B y`` expression.

    Only declared parameters with a non-blank value in ``parameters`` are
    rendered, so the script sees its own default for anything left empty.
    Names with the internal prefix are skipped.
    """
    parts = ["&", quote(str(script_path))]
    for definition in metadata.parameters:
        if definition.name.startswith(INTERNAL_PREFIX):
            continue
        value = parameters.get(definition.name)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        parts.append(format_argument(definition.name, value, definition.type))
    return " ".join(parts)


class ShellScriptExecutor:
    """Runs ``.ps1`` scripts through pwsh (or Windows PowerShell)."""

    def __init__(
        self,
        options: ExecutionConfig,
        storage: TempScriptStorage,
        runner: Optional[ProcessRunner] = None,
    ):
        self.options = options
        self.storage = storage
        self.runner = runner or ProcessRunner()

    def resolve_interpreter(self) -> str:
        """Locate the PowerShell interpreter.

        Raises:
            InterpreterNotFoundError: If nothing usable is found.
        """
        configured = self.options.powershell_path
        if configured and Path(configured).is_file():
            return configured

        pwsh = shutil.which("pwsh")
        if pwsh:
            return pwsh

        if IS_WINDOWS and self.options.fallback_to_windows_powershell:
            legacy = shutil.which("powershell")
            if legacy:
                return legacy
            system_root = os.environ.get("SystemRoot", r"C:\Windows")
            system_ps = Path(system_root) / "System32" / "WindowsPowerShell" / "v1.0" / "powershell.exe"
            if system_ps.is_file():
                return str(system_ps)

        raise InterpreterNotFoundError(
            "No PowerShell executable found. Install PowerShell 7 (pwsh) "
            "or enable fallback to powershell.exe."
        )

    def build_command(self, interpreter: str, script_path: Path, metadata: ScriptMetadata,
                      parameters: Mapping[str, Any]) -> List[str]:
        return [
            interpreter,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            build_invocation(script_path, metadata, parameters),
        ]

    def execute(
        self,
        metadata: ScriptMetadata,
        context: ExecutionContext,
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        """Run the script and map its exit code to a terminal status.

        Never raises: resolution, spawn and cancellation failures become a
        Failed result with exit code -1.
        """
        script_path = Path(context.script_path)
        try:
            interpreter = self.resolve_interpreter()
            command = self.build_command(interpreter, script_path, metadata, context.parameters)
            logger.info(
                "[PS] Executing script path=%s shell=%s with %d parameters",
                script_path,
                interpreter,
                len(metadata.parameters),
            )
            result = self.runner.run(command, cwd=script_path.parent, cancel=cancel)
            logger.info(
                "[PS] Completed script path=%s exitCode=%d stdoutLen=%d stderrLen=%d",
                script_path,
                result.exit_code,
                len(result.stdout),
                len(result.stderr),
            )
            status = ExecutionStatus.SUCCEEDED if result.exit_code == 0 else ExecutionStatus.FAILED
            return ExecutionResult(
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
                status=status,
            )
        except ExecutionCancelled:
            logger.warning("[PS] Execution cancelled path=%s", script_path)
            return ExecutionResult.failure("Execution cancelled")
        except Exception as e:
            logger.error("[PS] PowerShell execution failed: %s", e)
            return ExecutionResult.failure(str(e))
        finally:
            if self.options.keep_temp_scripts:
                logger.info("[PS] Keeping temp script for inspection: %s", script_path)
            else:
                self.storage.delete(script_path)
