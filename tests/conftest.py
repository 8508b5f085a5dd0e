"""Shared fixtures for archiver tests."""

import os
import tempfile

# Keep runner-imported logging out of the working tree.
os.environ.setdefault("ARCHIVER_LOG_DIR", tempfile.mkdtemp(prefix="archiver-logs-"))

from pathlib import Path

import pytest

from backend.database.sql_handler import SQLHandler
from backend.services.archive.config import DirectorySpec
from backend.services.archive.store import MemoryArchiveStore, SQLArchiveStore


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A small directory tree with nested files."""
    root = tmp_path / "source"
    (root / "docs" / "deep").mkdir(parents=True)
    (root / "empty").mkdir()
    (root / "top.txt").write_text("top level\n")
    (root / "docs" / "a.md").write_text("# A\n")
    (root / "docs" / "deep" / "b.bin").write_bytes(bytes(range(256)) * 16)
    return root


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "archives"
    out.mkdir()
    return out


@pytest.fixture
def make_spec(source_dir, output_dir):
    """Factory for directory specs pointing at the test tree."""

    def _make(**overrides) -> DirectorySpec:
        data = {
            "name": "docs",
            "cron": "0 0 3 * * *",
            "input": str(source_dir),
            "output": str(output_dir),
        }
        data.update(overrides)
        return DirectorySpec.model_validate(data)

    return _make


@pytest.fixture
def memory_store() -> MemoryArchiveStore:
    return MemoryArchiveStore()


@pytest.fixture
async def sql_handler():
    handler = SQLHandler("sqlite+aiosqlite:///:memory:")
    await handler.create_tables()
    yield handler
    await handler.close()


@pytest.fixture
def sql_store(sql_handler) -> SQLArchiveStore:
    return SQLArchiveStore(sql_handler)
