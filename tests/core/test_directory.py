"""
Unit tests for the directory module.
"""

import os
from pathlib import Path

import pytest

from cargokit.core.directory import DirectoryError, get_cargo_home, get_home_dir


class TestGetHomeDir:
    """Test get_home_dir function."""

    def test_returns_path(self, isolated_home):
        """Test that the home directory follows the environment."""
        assert get_home_dir() == isolated_home

    @pytest.mark.skipif(os.name != "nt", reason="Windows only")
    def test_windows_requires_userprofile(self, monkeypatch):
        """Test that a missing USERPROFILE is an error on Windows."""
        monkeypatch.delenv("USERPROFILE")
        with pytest.raises(DirectoryError, match="USERPROFILE"):
            get_home_dir()


class TestGetCargoHome:
    """Test get_cargo_home function."""

    def test_absolute_cargo_home(self, tmp_path):
        """Test that an absolute CARGO_HOME is used as is."""
        home = tmp_path / "cargo"
        assert get_cargo_home(Path("/work"), {"CARGO_HOME": str(home)}) == home

    def test_relative_cargo_home(self, tmp_path):
        """Test that a relative CARGO_HOME is anchored at the cwd."""
        assert get_cargo_home(tmp_path, {"CARGO_HOME": "tools/cargo"}) == tmp_path / "tools" / "cargo"

    def test_default(self, isolated_home):
        """Test the default under the home directory."""
        assert get_cargo_home(Path("/work"), {}) == isolated_home / ".cargo"

    def test_empty_cargo_home_ignored(self, isolated_home):
        """Test that an empty CARGO_HOME falls back to the default."""
        assert get_cargo_home(Path("/work"), {"CARGO_HOME": ""}) == isolated_home / ".cargo"

    def test_reads_process_environment(self, tmp_path, monkeypatch):
        """Test that os.environ is used when no mapping is given."""
        monkeypatch.setenv("CARGO_HOME", str(tmp_path))
        assert get_cargo_home(Path("/work")) == tmp_path

    def test_no_home(self, monkeypatch):
        """Test that None is returned when no home directory exists."""
        def no_home():
            raise DirectoryError("no home")

        monkeypatch.setattr("cargokit.core.directory.get_home_dir", no_home)
        assert get_cargo_home(Path("/work"), {}) is None
