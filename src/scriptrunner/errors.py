# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Error taxonomy shared by the repository, validator and executors."""


class ScriptRunnerError(Exception):
    """Base class for all scriptrunner errors."""

    pass


class ConfigError(ScriptRunnerError):
    """Raised when the configuration file is missing or malformed."""

    pass


class ParseError(ScriptRunnerError):
    """Raised when a script has no metadata block or lacks mandatory fields."""

    pass


class ParameterValidationError(ScriptRunnerError):
    """Raised when a supplied parameter is missing or cannot be coerced."""

    def __init__(self, parameter: str, message: str):
        super().__init__(message)
        self.parameter = parameter


class ScriptNotFoundError(ScriptRunnerError):
    """Raised when a script id is not present in the repository inventory."""

    pass


class ResolutionError(ScriptRunnerError):
    """Raised when a required executable cannot be located."""

    pass


class GitNotFoundError(ResolutionError):
    """Raised when no git executable is available."""

    pass


class InterpreterNotFoundError(ResolutionError):
    """Raised when no PowerShell interpreter is available."""

    pass


class GitCommandError(ScriptRunnerError):
    """Raised when a git invocation fails after all retry attempts."""

    pass


class ExecutionCancelled(ScriptRunnerError):
    """Raised inside a worker when its cancellation signal fires."""

    pass
