"""Tests for the PowerShell executor."""

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from scriptrunner.config import ExecutionConfig
from scriptrunner.errors import ExecutionCancelled, InterpreterNotFoundError
from scriptrunner.execution import shell as shell_module
from scriptrunner.execution.shell import (
    ShellScriptExecutor,
    build_invocation,
    format_argument,
    quote,
)
from scriptrunner.process import ProcessResult
from scriptrunner.schemas import (
    ExecutionContext,
    ExecutionStatus,
    ParameterDefinition,
    ParameterType,
    ScriptMetadata,
)
from scriptrunner.scripts.validation import validate_parameters
from scriptrunner.storage import TempScriptStorage


HELLO = ScriptMetadata(
    id="hello",
    name="Hello",
    category="Demo",
    parameters=(
        ParameterDefinition("Name", ParameterType.STRING, default="World"),
        ParameterDefinition("Count", ParameterType.INT),
        ParameterDefinition("Loud", ParameterType.BOOL),
    ),
    source_path="scripts/hello.ps1",
)


class TestFormatting:
    """Tests for argument rendering."""

    def test_quote_doubles_single_quotes(self):
        assert quote("O'Brien") == "'O''Brien'"

    def test_string(self):
        assert format_argument("Name", "World", ParameterType.STRING) == "-Name 'World'"

    def test_numbers_unquoted(self):
        assert format_argument("Count", 5, ParameterType.INT) == "-Count 5"
        assert format_argument("Rate", Decimal("1.50"), ParameterType.DECIMAL) == "-Rate 1.50"

    def test_bool_switch_syntax(self):
        """Should render booleans as -Name:$true / -Name:$false."""
        assert format_argument("Loud", True, ParameterType.BOOL) == "-Loud:$true"
        assert format_argument("Loud", False, ParameterType.BOOL) == "-Loud:$false"

    def test_datetime_iso_quoted(self):
        value = datetime(2025, 3, 1, 10, 30)
        assert format_argument("At", value, ParameterType.DATETIME) == "-At '2025-03-01T10:30:00'"

    def test_build_invocation(self, tmp_path):
        """Should render declared parameters present in the bag, in order."""
        path = tmp_path / "script.ps1"

        expression = build_invocation(path, HELLO, {"Loud": True, "Name": "World", "Other": "x"})

        assert expression == f"& '{path}' -Name 'World' -Loud:$true"

    def test_default_rendered_after_validation(self, tmp_path):
        """Should render a defaulted optional parameter the caller did not supply."""
        metadata = ScriptMetadata(
            id="hello", name="Hello", category="Demo",
            parameters=(ParameterDefinition("Name", ParameterType.STRING, default="World"),),
        )
        bag = {}
        validate_parameters(metadata, bag)

        expression = build_invocation(tmp_path / "s.ps1", metadata, bag)

        assert expression.endswith("-Name 'World'")

    def test_blank_optional_values_not_rendered(self, tmp_path):
        """Should leave out blank optional Int and Bool values instead of dangling flags."""
        metadata = ScriptMetadata(
            id="x", name="X", category="C",
            parameters=(
                ParameterDefinition("Count", ParameterType.INT),
                ParameterDefinition("Loud", ParameterType.BOOL),
                ParameterDefinition("Name"),
            ),
        )
        bag = {"Count": "", "Loud": "  ", "Name": "Ann"}
        validate_parameters(metadata, bag)

        expression = build_invocation(tmp_path / "s.ps1", metadata, bag)

        assert expression == f"& '{tmp_path / 's.ps1'}' -Name 'Ann'"
        assert "-Count" not in expression
        assert "-Loud" not in expression

    def test_internal_parameters_skipped(self, tmp_path):
        metadata = ScriptMetadata(
            id="x", name="X", category="C",
            parameters=(ParameterDefinition("__tempPath"), ParameterDefinition("A")),
        )

        expression = build_invocation(tmp_path / "s.ps1", metadata, {"__tempPath": "/tmp/x", "A": "1"})

        assert "__tempPath" not in expression
        assert expression.endswith("-A '1'")


@pytest.fixture
def storage(tmp_path):
    return TempScriptStorage(tmp_path / "temp")


@pytest.fixture
def script_file(storage):
    return storage.write("param($Name) Write-Output \"Hello $Name\"", ".ps1")


class TestShellScriptExecutor:
    """Tests for ShellScriptExecutor.execute."""

    def _executor(self, storage, runner, **options):
        executor = ShellScriptExecutor(ExecutionConfig(**options), storage, runner=runner)
        executor.resolve_interpreter = lambda: "/usr/bin/pwsh"
        return executor

    def test_success(self, storage, script_file):
        """Should map exit code 0 to Succeeded and pass the command through."""
        runner = MagicMock()
        runner.run.return_value = ProcessResult(0, "Hello World\n", "")
        executor = self._executor(storage, runner)

        result = executor.execute(HELLO, ExecutionContext(script_file, {"Name": "World"}))

        assert result.status == ExecutionStatus.SUCCEEDED
        assert result.stdout == "Hello World\n"
        command = runner.run.call_args[0][0]
        assert command[:6] == ["/usr/bin/pwsh", "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command"]
        assert command[6] == f"& '{script_file}' -Name 'World'"

    def test_nonzero_exit_is_failure(self, storage, script_file):
        runner = MagicMock()
        runner.run.return_value = ProcessResult(3, "", "boom")
        result = self._executor(storage, runner).execute(HELLO, ExecutionContext(script_file, {}))

        assert result.status == ExecutionStatus.FAILED
        assert result.exit_code == 3
        assert result.stderr == "boom"

    def test_temp_script_deleted(self, storage, script_file):
        """Should remove the materialized script and its directory."""
        runner = MagicMock()
        runner.run.return_value = ProcessResult(0, "", "")

        self._executor(storage, runner).execute(HELLO, ExecutionContext(script_file, {}))

        assert not script_file.exists()
        assert not script_file.parent.exists()

    def test_keep_temp_scripts(self, storage, script_file):
        runner = MagicMock()
        runner.run.return_value = ProcessResult(0, "", "")

        self._executor(storage, runner, keep_temp_scripts=True).execute(HELLO, ExecutionContext(script_file, {}))

        assert script_file.exists()

    def test_cancelled(self, storage, script_file):
        """Should report cancellation as a failure and still clean up."""
        runner = MagicMock()
        runner.run.side_effect = ExecutionCancelled("killed")

        result = self._executor(storage, runner).execute(HELLO, ExecutionContext(script_file, {}))

        assert result.status == ExecutionStatus.FAILED
        assert result.exit_code == -1
        assert result.stderr == "Execution cancelled"
        assert not script_file.exists()

    def test_missing_interpreter(self, storage, script_file, monkeypatch):
        """Should fail without raising when no interpreter exists."""
        monkeypatch.setattr(shell_module.shutil, "which", lambda name: None)
        monkeypatch.setattr(shell_module, "IS_WINDOWS", False)
        executor = ShellScriptExecutor(ExecutionConfig(), storage, runner=MagicMock())

        result = executor.execute(HELLO, ExecutionContext(script_file, {}))

        assert result.status == ExecutionStatus.FAILED
        assert "No PowerShell executable found" in result.stderr
        assert not script_file.exists()


class TestResolveInterpreter:
    """Tests for interpreter resolution."""

    def test_configured_path(self, storage, tmp_path):
        configured = tmp_path / "pwsh"
        configured.write_text("")
        executor = ShellScriptExecutor(ExecutionConfig(powershell_path=str(configured)), storage)

        assert executor.resolve_interpreter() == str(configured)

    def test_pwsh_on_path(self, storage, monkeypatch):
        monkeypatch.setattr(shell_module.shutil, "which", lambda name: "/opt/pwsh" if name == "pwsh" else None)
        executor = ShellScriptExecutor(ExecutionConfig(powershell_path="/missing/pwsh"), storage)

        assert executor.resolve_interpreter() == "/opt/pwsh"

    def test_windows_fallback(self, storage, monkeypatch):
        """Should fall back to Windows PowerShell when allowed."""
        found = {"powershell": "C:/ps/powershell.exe"}
        monkeypatch.setattr(shell_module.shutil, "which", found.get)
        monkeypatch.setattr(shell_module, "IS_WINDOWS", True)

        executor = ShellScriptExecutor(ExecutionConfig(), storage)
        assert executor.resolve_interpreter() == "C:/ps/powershell.exe"

    def test_windows_fallback_disabled(self, storage, monkeypatch):
        monkeypatch.setattr(shell_module.shutil, "which", {"powershell": "C:/ps/powershell.exe"}.get)
        monkeypatch.setattr(shell_module, "IS_WINDOWS", True)

        executor = ShellScriptExecutor(ExecutionConfig(fallback_to_windows_powershell=False), storage)
        with pytest.raises(InterpreterNotFoundError, match="No PowerShell executable found"):
            executor.resolve_interpreter()
