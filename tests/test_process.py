"""Tests for the process runner."""

import sys
import threading
import time

import pytest

from scriptrunner.errors import ExecutionCancelled
from scriptrunner.process import ProcessRunner


class TestProcessRunner:
    """Tests for ProcessRunner.run."""

    def test_captures_output_and_exit_code(self):
        runner = ProcessRunner()
        result = runner.run([
            sys.executable,
            "-c",
            "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)",
        ])

        assert result.exit_code == 3
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    def test_cwd_and_env(self, tmp_path):
        runner = ProcessRunner()
        result = runner.run(
            [sys.executable, "-c", "import os; print(os.getcwd()); print(os.environ['MARKER'])"],
            cwd=tmp_path,
            env={"MARKER": "here", "SYSTEMROOT": "C:\\Windows"},
        )

        lines = result.stdout.splitlines()
        assert lines[1] == "here"

    def test_cancel_kills_process(self):
        """Should kill a long-running process when cancelled."""
        cancel = threading.Event()
        runner = ProcessRunner(poll_interval=0.05)
        threading.Timer(0.2, cancel.set).start()

        start = time.monotonic()
        with pytest.raises(ExecutionCancelled):
            runner.run([sys.executable, "-c", "import time; time.sleep(30)"], cancel=cancel)

        assert time.monotonic() - start < 10

    def test_missing_program_raises(self, tmp_path):
        with pytest.raises(OSError):
            ProcessRunner().run([str(tmp_path / "does-not-exist")])
