"""Tests for temporary script storage."""

import os
import time

from scriptrunner.storage import TempScriptStorage


class TestTempScriptStorage:
    """Tests for TempScriptStorage."""

    def test_write_creates_unique_container(self, tmp_path):
        """Should write each script into its own directory."""
        storage = TempScriptStorage(tmp_path / "temp")

        first = storage.write("SELECT 1;", ".sql")
        second = storage.write("SELECT 2;", ".sql")

        assert first.name == "script.sql"
        assert first.parent != second.parent
        assert first.parent.parent == storage.root
        assert first.read_text(encoding="utf-8") == "SELECT 1;"

    def test_delete_removes_container(self, tmp_path):
        storage = TempScriptStorage(tmp_path / "temp")
        path = storage.write("x", ".ps1")

        storage.delete(path)

        assert not path.exists()
        assert not path.parent.exists()
        assert storage.root.exists()

    def test_delete_is_idempotent(self, tmp_path):
        """Should ignore paths that are already gone."""
        storage = TempScriptStorage(tmp_path / "temp")
        path = storage.write("x", ".ps1")

        storage.delete(path)
        storage.delete(path)
        storage.delete(None)
        storage.delete("")

    def test_cleanup_orphans(self, tmp_path):
        """Should remove only directories older than the cutoff."""
        storage = TempScriptStorage(tmp_path / "temp")
        old = storage.write("old", ".ps1").parent
        fresh = storage.write("fresh", ".ps1").parent
        two_hours_ago = time.time() - 7200
        os.utime(old, (two_hours_ago, two_hours_ago))

        removed = storage.cleanup_orphans(3600)

        assert removed == [old]
        assert not old.exists()
        assert fresh.exists()

    def test_cleanup_missing_root(self, tmp_path):
        storage = TempScriptStorage(tmp_path / "temp")
        storage.root.rmdir()
        assert storage.cleanup_orphans() == []
