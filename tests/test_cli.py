"""Tests for the scriptrunner CLI."""

from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from scriptrunner import __version__
from scriptrunner.cli import app
from scriptrunner.errors import GitCommandError, ParameterValidationError, ScriptNotFoundError
from scriptrunner.schemas import (
    ExecutionRecord,
    ExecutionStatus,
    ParameterDefinition,
    ParameterType,
    ScriptMetadata,
)


runner = CliRunner()

HELLO = ScriptMetadata(
    id="hello",
    name="Hello",
    category="Demo",
    description="Says hello",
    parameters=(
        ParameterDefinition("Name", ParameterType.STRING, required=True, default="World", help_text="Who"),
        ParameterDefinition("Mode", ParameterType.ENUM, enum_values=("Loud", "Quiet")),
    ),
    source_path="scripts/hello.ps1",
)


@pytest.fixture
def service(monkeypatch, tmp_path):
    """Replace the configured service with a mock."""
    monkeypatch.delenv("SCRIPTRUNNER_CONFIG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    mock = MagicMock()
    with patch("scriptrunner.cli.ScriptRunnerService.from_config", return_value=mock):
        yield mock


class TestTopLevel:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_config_file(self, tmp_path):
        """Should report a missing explicit config file."""
        result = runner.invoke(app, ["--config", str(tmp_path / "nope.yaml"), "script", "list"])
        assert result.exit_code == 1
        assert "Config error" in result.output

    def test_cleanup(self, service, tmp_path):
        service.storage.cleanup_orphans.return_value = [tmp_path / "a", tmp_path / "b"]

        result = runner.invoke(app, ["cleanup", "--max-age", "60"])

        assert result.exit_code == 0
        assert "Removed 2 orphaned temp folder(s)" in result.output
        service.storage.cleanup_orphans.assert_called_once_with(60)


class TestScriptCommands:
    """Tests for the script command group."""

    def test_list(self, service):
        service.list_scripts.return_value = [HELLO]

        result = runner.invoke(app, ["script", "list"])

        assert result.exit_code == 0
        assert "hello [Demo] (ps1)" in result.output
        assert "Says hello" in result.output

    def test_list_empty(self, service):
        service.list_scripts.return_value = []
        result = runner.invoke(app, ["script", "list"])
        assert "No scripts found." in result.output

    def test_list_repository_error(self, service):
        service.list_scripts.side_effect = GitCommandError("git clone failed: denied")

        result = runner.invoke(app, ["script", "list"])

        assert result.exit_code == 1
        assert "Repository error: git clone failed: denied" in result.output

    def test_info(self, service):
        service.get_script.return_value = HELLO

        result = runner.invoke(app, ["script", "info", "hello"])

        assert result.exit_code == 0
        assert "Name: String (required)" in result.output
        assert "Default: World" in result.output
        assert "Values: Loud, Quiet" in result.output

    def test_info_unknown(self, service):
        service.get_script.side_effect = ScriptNotFoundError("Script not found: nope")

        result = runner.invoke(app, ["script", "info", "nope"])

        assert result.exit_code == 1
        assert "Script not found: nope" in result.output

    def test_content(self, service):
        service.get_content.return_value = "Write-Output 'hi'"
        result = runner.invoke(app, ["script", "content", "hello"])
        assert "Write-Output 'hi'" in result.output

    def test_run_success(self, service):
        """Should pass key=value parameters as strings and report the outcome."""
        record = ExecutionRecord(script_id="hello", script_name="Hello", ran_by_user="ops", execution_id="e-1")
        record = record.advance(ExecutionStatus.SUCCEEDED, stdout="Hello World")
        service.execute.return_value = "e-1"
        service.wait.return_value = record

        result = runner.invoke(app, ["script", "run", "hello", "Name=World", "Note=a=b", "--user", "ops"])

        assert result.exit_code == 0
        service.execute.assert_called_once_with("hello", {"Name": "World", "Note": "a=b"}, "ops")
        assert "Execution: e-1" in result.output
        assert "Status: Succeeded (exit code 0)" in result.output
        assert "Hello World" in result.output
        service.close.assert_called_once()

    def test_run_failed_script(self, service):
        record = ExecutionRecord(script_id="hello", script_name="Hello", ran_by_user="ops")
        service.execute.return_value = record.execution_id
        service.wait.return_value = record.advance(ExecutionStatus.FAILED, exit_code=2, stderr="bad")

        result = runner.invoke(app, ["script", "run", "hello"])

        assert result.exit_code == 1
        assert "Status: Failed (exit code 2)" in result.output

    def test_run_invalid_parameters(self, service):
        service.execute.side_effect = ParameterValidationError("Count", "Parameter Count value conversion failed: x")

        result = runner.invoke(app, ["script", "run", "hello", "Count=x"])

        assert result.exit_code == 2
        assert "Invalid parameters" in result.output

    def test_run_bad_argument(self, service):
        result = runner.invoke(app, ["script", "run", "hello", "NoEquals"])

        assert result.exit_code != 0
        service.execute.assert_not_called()


class TestHistoryCommands:
    """Tests for the history command group."""

    def test_list(self, service):
        record = ExecutionRecord(script_id="hello", script_name="Hello", ran_by_user="ops", execution_id="e-1")
        service.history.query.return_value = [record]

        result = runner.invoke(app, ["history", "list", "--limit", "5"])

        assert result.exit_code == 0
        assert "e-1" in result.output
        assert "Queued" in result.output
        service.history.query.assert_called_once_with(limit=5)

    def test_list_empty(self, service):
        service.history.query.return_value = []
        result = runner.invoke(app, ["history", "list"])
        assert "No executions recorded." in result.output

    def test_show(self, service):
        record = ExecutionRecord(script_id="hello", script_name="Hello", ran_by_user="ops", execution_id="e-1")
        service.history.get.return_value = record.advance(
            ExecutionStatus.FAILED, exit_code=1, stdout="partial", stderr="boom"
        )

        result = runner.invoke(app, ["history", "show", "e-1"])

        assert result.exit_code == 0
        assert "Status: Failed" in result.output
        assert "STDOUT:" in result.output
        assert "boom" in result.output

    def test_show_unknown(self, service):
        service.history.get.return_value = None
        result = runner.invoke(app, ["history", "show", "nope"])
        assert result.exit_code == 1


class TestConfigCommands:
    def test_validate(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GH_PAT", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(
            "script_repo:\n  github:\n    repo_url: https://github.com/acme/ops.git\n    pat: env:GH_PAT\n"
        )

        result = runner.invoke(app, ["config", "validate", "--config", str(path)])

        assert result.exit_code == 0
        assert "Repository: https://github.com/acme/ops.git (main)" in result.output
        assert "no access token resolved" in result.output
        assert "Configuration validation complete!" in result.output

    def test_validate_uses_global_option(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("execution:\n  max_concurrent_executions: 0\n")

        result = runner.invoke(app, ["--config", str(path), "config", "validate"])

        assert result.exit_code == 1
        assert "Validation failed" in result.output
