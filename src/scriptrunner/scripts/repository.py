"""Git-backed script repository.

Lists and reads scripts from a remote git branch without a working tree:
a shallow, checkout-less, blob-filtered clone into a throwaway directory,
then ``ls-tree`` and ``show`` against the resolved commit.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import logging
import shutil
import tempfile
import threading
import time
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from scriptrunner.config import RepoConfig
from scriptrunner.errors import ExecutionCancelled, GitCommandError
from scriptrunner.schemas import ScriptMetadata, is_script_path
from scriptrunner.scripts.git import GitProcess
from scriptrunner.scripts.metadata import parse_metadata

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 30.0
LIST_CACHE_KEY = "script_list"

T = TypeVar("T")


class TtlCache(Generic[T]):
    """Tiny expiring key/value cache.

    No lock and no single-flight: concurrent misses each compute the value
    and the last writer wins. All writers compute the same value from the
    same commit.
    """

    def __init__(self, ttl: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, Tuple[float, T]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self.clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = (self.clock() + self.ttl, value)

    def clear(self) -> None:
        self._entries.clear()


def _work_root() -> Path:
    return Path(tempfile.gettempdir()) / "scriptrunner-git"


def _create_work_dir() -> Path:
    path = _work_root() / uuid.uuid4().hex
    path.mkdir(parents=True)
    return path


def _safe_delete(path: Path) -> None:
    """Remove a work directory, ignoring every error."""
    shutil.rmtree(path, ignore_errors=True)


class GitScriptRepository:
    """Script inventory and content from the configured remote branch."""

    def __init__(
        self,
        config: RepoConfig,
        git: Optional[GitProcess] = None,
        parser: Callable[[str], ScriptMetadata] = parse_metadata,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.git = git or GitProcess(config)
        self.parser = parser
        self._list_cache: TtlCache[List[ScriptMetadata]] = TtlCache(ttl, clock)
        self._content_cache: TtlCache[str] = TtlCache(ttl, clock)

    # -- git steps --------------------------------------------------------

    def _git(self, args: List[str], work_dir: Path, cancel: Optional[threading.Event], what: str) -> str:
        result = self.git.run(args, cwd=work_dir, cancel=cancel)
        if result.exit_code != 0:
            raise GitCommandError(f"git {what} failed: {result.stderr.strip()}")
        return result.stdout

    def _clone(self, work_dir: Path, cancel: Optional[threading.Event]) -> None:
        provider = self.config.active
        self._git(
            [
                "clone",
                "--depth=1",
                "--no-checkout",
                "--filter=blob:none",
                "--branch",
                provider.branch,
                provider.repo_url,
                ".",
            ],
            work_dir,
            cancel,
            "clone",
        )
        logger.info("[Repo] Clone depth=1 completed for %s branch=%s", provider.repo_url, provider.branch)

    def _resolve_commit(self, work_dir: Path, cancel: Optional[threading.Event]) -> str:
        branch = self.config.active.branch
        return self._git(["rev-parse", branch], work_dir, cancel, "rev-parse").strip()

    def _list_paths(self, commit: str, work_dir: Path, cancel: Optional[threading.Event]) -> List[str]:
        stdout = self._git(["ls-tree", "-r", "--name-only", commit], work_dir, cancel, "ls-tree")
        return [line.strip() for line in stdout.split("\n") if line.strip()]

    def _show(self, commit: str, path: str, work_dir: Path, cancel: Optional[threading.Event]) -> str:
        return self._git(["show", f"{commit}:{path}"], work_dir, cancel, f"show {path}")

    # -- public API -------------------------------------------------------

    def list_scripts(self, cancel: Optional[threading.Event] = None) -> List[ScriptMetadata]:
        """List every parseable script on the configured branch.

        Scripts whose content cannot be fetched or parsed are logged and
        skipped; they never fail the listing as a whole.

        Raises:
            GitCommandError: If the clone or tree enumeration fails.
            ResolutionError: If git cannot be located.
        """
        cached = self._list_cache.get(LIST_CACHE_KEY)
        if cached is not None:
            return list(cached)

        work_dir = _create_work_dir()
        try:
            self._clone(work_dir, cancel)
            commit = self._resolve_commit(work_dir, cancel)
            paths = self._list_paths(commit, work_dir, cancel)
            logger.info("[Repo] Enumerated %d repository paths at %s", len(paths), commit[:12])

            scripts: List[ScriptMetadata] = []
            for path in paths:
                if not is_script_path(path):
                    continue
                try:
                    raw = self._show(commit, path, work_dir, cancel)
                    metadata = replace(self.parser(raw), source_path=path)
                except ExecutionCancelled:
                    raise
                except Exception as e:
                    logger.warning("[Repo] Failed parsing metadata for %s: %s", path, e)
                    continue
                scripts.append(metadata)
                logger.debug("[Repo] Parsed metadata Id=%s from path=%s", metadata.id, path)

            logger.info("[Repo] Returning %d script metadata entries", len(scripts))
            self._list_cache.set(LIST_CACHE_KEY, scripts)
            return list(scripts)
        finally:
            _safe_delete(work_dir)

    def get_metadata(self, script_id: str, cancel: Optional[threading.Event] = None) -> Optional[ScriptMetadata]:
        """Look up one script by id (case-insensitive)."""
        for metadata in self.list_scripts(cancel):
            if metadata.matches(script_id):
                return metadata
        return None

    def get_content(self, script_id: str, cancel: Optional[threading.Event] = None) -> str:
        """Return the raw text of a script, or an empty string if unknown."""
        key = script_id.casefold()
        cached = self._content_cache.get(key)
        if cached is not None:
            return cached

        metadata = self.get_metadata(script_id, cancel)
        if metadata is None or not metadata.source_path:
            return ""

        work_dir = _create_work_dir()
        try:
            self._clone(work_dir, cancel)
            commit = self._resolve_commit(work_dir, cancel)
            raw = self._show(commit, metadata.source_path, work_dir, cancel)
            self._content_cache.set(key, raw)
            return raw
        finally:
            _safe_delete(work_dir)

    def invalidate(self) -> None:
        """Drop both caches."""
        self._list_cache.clear()
        self._content_cache.clear()

