# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""scriptrunner schemas."""

from scriptrunner.schemas.execution import (
    ExecutionContext,
    ExecutionRecord,
    ExecutionResult,
    ExecutionStatus,
    InvalidTransitionError,
)
from scriptrunner.schemas.script import (
    DATABASE_EXTENSION,
    INTERNAL_PREFIX,
    SHELL_EXTENSION,
    ParameterDefinition,
    ParameterType,
    ScriptMetadata,
    is_script_path,
)

__all__ = [
    "ExecutionContext",
    "ExecutionRecord",
    "ExecutionResult",
    "ExecutionStatus",
    "InvalidTransitionError",
    "DATABASE_EXTENSION",
    "INTERNAL_PREFIX",
    "SHELL_EXTENSION",
    "ParameterDefinition",
    "ParameterType",
    "ScriptMetadata",
    "is_script_path",
]
