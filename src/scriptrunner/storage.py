# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Temporary script storage.

Each script is written into its own uniquely named directory under the
temp root, so deleting a script removes its container as well.
"""

import logging
import shutil
import time
import uuid
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

ORPHAN_MAX_AGE_SECONDS = 3600


class TempScriptStorage:
    """Write and delete materialized script files."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)

    def write(self, content: str, extension: str) -> Path:
        """Write content to ``<root>/<uuid>/script<extension>``."""
        directory = self.root / uuid.uuid4().hex
        directory.mkdir(parents=True)
        path = directory / f"script{extension}"
        path.write_text(content, encoding="utf-8")
        logger.debug("Temp script written %s", path)
        return path

    def delete(self, path: Optional[Union[str, Path]]) -> None:
        """Delete a temp script and its container directory.

        Idempotent: missing paths are ignored and failures are logged only.
        """
        if not path:
            return
        target = Path(path)
        try:
            if target.is_file():
                container = target.parent
                target.unlink()
                if container != self.root and container.is_dir():
                    shutil.rmtree(container)
                logger.debug("Deleted temp script path %s", target)
            elif target.is_dir():
                shutil.rmtree(target)
                logger.debug("Deleted temp directory %s", target)
        except OSError as e:
            logger.warning("Failed deleting temp path %s: %s", target, e)

    def cleanup_orphans(self, max_age_seconds: float = ORPHAN_MAX_AGE_SECONDS) -> List[Path]:
        """Remove script directories not modified within ``max_age_seconds``.

        Returns:
            Directories that were deleted.
        """
        if not self.root.exists():
            return []
        cutoff = time.time() - max_age_seconds
        removed = []
        for directory in self.root.iterdir():
            if not directory.is_dir():
                continue
            try:
                if directory.stat().st_mtime < cutoff:
                    shutil.rmtree(directory)
                    removed.append(directory)
                    logger.info("Deleted orphan temp folder %s", directory)
            except OSError as e:
                logger.warning("Failed to delete temp folder %s: %s", directory, e)
        return removed
