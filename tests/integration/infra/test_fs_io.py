from __future__ import annotations

"""
Integration tests for FileSystem I/O.

Verifies path resolution and the atomic write / read primitives used for
the state file and the configuration documents.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from tychonet.domain.errors import PersistenceError
from tychonet.infra.fs import atomic_write_text, get_user_data_dir, normalize_path, read_text


def test_user_data_dir_is_absolute() -> None:
    """TC-01: The data directory resolves to an absolute path."""
    path = get_user_data_dir()
    assert os.path.isabs(path)
    assert "tychonet" in path.lower()


def test_normalize_path_fallback_and_expansion(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("TYCHO_TEST_DIR", str(tmp_path))

    assert normalize_path("", str(tmp_path)) == str(tmp_path)
    assert normalize_path("$TYCHO_TEST_DIR/state.json", "") == str(tmp_path / "state.json")


def test_atomic_write_creates_parents(tmp_path: Path) -> None:
    """TC-02: Missing parent directories are created."""
    target = tmp_path / "nested" / "dir" / "state.json"

    atomic_write_text(str(target), '{"a": 1}')

    assert read_text(str(target)) == '{"a": 1}'


def test_atomic_write_replaces_and_leaves_no_temp(tmp_path: Path) -> None:
    target = tmp_path / "config.json"
    target.write_text("old", encoding="utf-8")

    atomic_write_text(str(target), "new")

    assert target.read_text(encoding="utf-8") == "new"
    assert [p.name for p in tmp_path.iterdir()] == ["config.json"]


def test_failed_replace_keeps_original(tmp_path: Path) -> None:
    """TC-03: A failing rename leaves the target and no temp file behind."""
    target = tmp_path / "config.json"
    target.write_text("old", encoding="utf-8")

    with patch("tychonet.infra.fs.os.replace", side_effect=OSError(13, "Permission denied")):
        with pytest.raises(PersistenceError, match="Permission denied"):
            atomic_write_text(str(target), "new")

    assert target.read_text(encoding="utf-8") == "old"
    assert [p.name for p in tmp_path.iterdir()] == ["config.json"]


def test_read_missing_file(tmp_path: Path) -> None:
    with pytest.raises(PersistenceError) as exc_info:
        read_text(str(tmp_path / "absent.json"))
    assert exc_info.value.path == str(tmp_path / "absent.json")
