# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Script executors and the execution dispatcher."""

from scriptrunner.execution.composite import CompositeScriptExecutor
from scriptrunner.execution.database import DatabaseScriptExecutor
from scriptrunner.execution.dispatcher import ExecutionDispatcher
from scriptrunner.execution.shell import ShellScriptExecutor

__all__ = [
    "CompositeScriptExecutor",
    "DatabaseScriptExecutor",
    "ExecutionDispatcher",
    "ShellScriptExecutor",
]
