"""
Process runner for scriptrunner.

Runs an external command to completion, capturing stdout and stderr, with
an optional cancellation signal that kills the whole process tree.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import logging
import os
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from scriptrunner.errors import ExecutionCancelled

IS_WINDOWS = sys.platform == "win32"

# How often a waiting run checks its cancellation signal
POLL_INTERVAL = 0.2


@dataclass(frozen=True)
class ProcessResult:
    """Completed process outcome."""
    exit_code: int
    stdout: str
    stderr: str


def kill_process_tree(proc: subprocess.Popen) -> None:
    """Kill a process and every descendant.

    On POSIX the child is started as a session leader, so its process group
    id equals its pid. On Windows ``taskkill /T`` walks the tree.
    """
    if proc.poll() is not None:
        return
    if IS_WINDOWS:
        subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
            capture_output=True,
            check=False,
        )
    else:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass


class ProcessRunner:
    """Executes commands and waits for them, honouring cancellation."""

    def __init__(self, poll_interval: float = POLL_INTERVAL):
        self.poll_interval = poll_interval
        self.logger = logging.getLogger(__name__)

    def run(
        self,
        command: List[str],
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Dict[str, str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ProcessResult:
        """
        Execute a command and capture its output.

        Args:
            command: Program and arguments; no shell is involved
            cwd: Working directory
            env: Complete environment for the child (inherits when None)
            cancel: Set to abort; the process tree is killed

        Returns:
            ProcessResult with exit code and decoded output

        Raises:
            OSError: If the process cannot be started
            ExecutionCancelled: If ``cancel`` fires before the process exits
        """
        popen_kwargs = {}
        if IS_WINDOWS:
            popen_kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            popen_kwargs["start_new_session"] = True

        proc = subprocess.Popen(
            command,
            cwd=str(cwd) if cwd else None,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            **popen_kwargs,
        )
        self.logger.debug("Started process pid=%s", proc.pid)

        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    self.logger.warning("Cancelling process pid=%s; killing tree", proc.pid)
                    kill_process_tree(proc)
                    proc.communicate()
                    raise ExecutionCancelled(f"process {proc.pid} cancelled")

        return ProcessResult(exit_code=proc.returncode, stdout=stdout or "", stderr=stderr or "")
