"""Minimal git process wrapper.

Resolves a git executable, supplies credentials through the environment
(never through argv), disables interactive prompting and retries
execution-level failures with linear backoff.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import base64
import logging
import os
import shutil
import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional

from scriptrunner.config import RepoConfig
from scriptrunner.errors import ExecutionCancelled, GitCommandError, GitNotFoundError
from scriptrunner.process import IS_WINDOWS, ProcessResult, ProcessRunner

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_SECONDS = 0.2


def _exe(name: str) -> str:
    return f"{name}.exe" if IS_WINDOWS else name


def candidate_git_paths(base_dir: Optional[Path] = None) -> List[Path]:
    """Conventional git locations relative to the running program."""
    base = base_dir or Path(sys.executable).resolve().parent
    return [
        base / _exe("git"),
        base / "tools" / "mingit" / "cmd" / _exe("git"),
        base / "tools" / "portablegit" / "cmd" / _exe("git"),
    ]


def _auth_header(provider: str, token: str) -> str:
    """Basic auth header accepted by the provider for a personal access token."""
    user = "" if provider == "azure_devops" else "x-access-token"
    encoded = base64.b64encode(f"{user}:{token}".encode()).decode()
    return f"Authorization: Basic {encoded}"


class GitProcess:
    """Runs git subcommands for the configured repository."""

    def __init__(
        self,
        config: RepoConfig,
        runner: Optional[ProcessRunner] = None,
        base_dir: Optional[Path] = None,
        sleep=None,
    ):
        self.config = config
        self.runner = runner or ProcessRunner()
        self.base_dir = base_dir
        self._sleep = sleep

    def resolve_git_path(self) -> str:
        """Locate the git executable.

        Order: configured ``git_path``, conventional locations next to the
        running interpreter, then the search path.

        Raises:
            GitNotFoundError: If none exists.
        """
        configured = self.config.git_path
        if configured and Path(configured).is_file():
            logger.debug("[Git] Using configured git_path: %s", configured)
            return configured

        for candidate in candidate_git_paths(self.base_dir):
            if candidate.is_file():
                logger.debug("[Git] Using bundled git: %s", candidate)
                return str(candidate)

        on_path = shutil.which("git")
        if on_path:
            logger.debug("[Git] Using git from PATH: %s", on_path)
            return on_path

        raise GitNotFoundError(
            "git executable not found. Configure script_repo.git_path or install git."
        )

    def build_env(self) -> Dict[str, str]:
        """Environment for a git child process."""
        provider = self.config.active
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["GIT_CONFIG_NOSYSTEM"] = "1"

        token = provider.resolve_pat()
        if token:
            env["GIT_CONFIG_COUNT"] = "1"
            env["GIT_CONFIG_KEY_0"] = "http.extraHeader"
            env["GIT_CONFIG_VALUE_0"] = _auth_header(self.config.provider, token)
        if provider.proxy:
            env["HTTPS_PROXY"] = provider.proxy

        logger.debug(
            "[Git] Env: GIT_TERMINAL_PROMPT=0, GIT_CONFIG_NOSYSTEM=1, PAT set=%s, Proxy set=%s",
            bool(token),
            bool(provider.proxy),
        )
        return env

    def _wait(self, seconds: float, cancel: Optional[threading.Event]) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
        elif cancel is not None:
            if cancel.wait(seconds):
                raise ExecutionCancelled("git invocation cancelled during backoff")
        else:
            threading.Event().wait(seconds)

    def run(
        self,
        args: List[str],
        cwd: Optional[Path] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ProcessResult:
        """Run ``git <args>`` with retry.

        A non-zero exit code is returned to the caller and is not retried;
        only failures to execute the process are.

        Raises:
            GitNotFoundError: If git cannot be located.
            GitCommandError: If every attempt failed to execute.
            ExecutionCancelled: If ``cancel`` fires.
        """
        git_path = self.resolve_git_path()
        preview = " ".join([git_path, *args])
        env = self.build_env()
        last_error: Optional[Exception] = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.info("[Git] Attempt %d executing: %s (cwd=%s)", attempt, preview, cwd)
            try:
                result = self.runner.run([git_path, *args], cwd=cwd, env=env, cancel=cancel)
            except ExecutionCancelled:
                raise
            except Exception as e:
                last_error = e
                logger.warning("[Git] Attempt %d failed for: %s: %s", attempt, preview, e)
                if attempt < MAX_ATTEMPTS:
                    self._wait(BACKOFF_SECONDS * attempt, cancel)
                continue

            logger.debug(
                "[Git] Completed (code=%d) stdoutLen=%d stderrLen=%d",
                result.exit_code,
                len(result.stdout),
                len(result.stderr),
            )
            if result.exit_code != 0:
                logger.warning(
                    "[Git] Non-zero exit (%d) for: %s. stderr=\n%s",
                    result.exit_code,
                    preview,
                    result.stderr,
                )
            return result

        logger.error("[Git] All attempts failed for: %s", preview)
        raise GitCommandError(f"git execution failed after {MAX_ATTEMPTS} attempts: {last_error}") from last_error
