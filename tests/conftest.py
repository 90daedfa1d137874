"""
Pytest configuration and shared fixtures for CargoKit tests.
"""

import pytest
from pathlib import Path

# Import test fixtures to make them available to all tests
# These imports register the fixtures with pytest's fixture discovery system
# ruff: noqa: F401
from tests.fixtures.workspaces import (
    cargo_home,
    nested_workspace,
    target_workspace,
)

from cargokit.core.platform import clear_host_cache
from cargokit.cross.descriptor import clear_descriptor_cache
from cargokit.cross.predicate import clear_predicate_cache


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "posix: marks tests that rely on POSIX permissions or symlinks"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clear_caches():
    """Start every test with empty descriptor, predicate and host caches."""
    clear_descriptor_cache()
    clear_predicate_cache()
    clear_host_cache()
    yield
    clear_descriptor_cache()


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch) -> Path:
    """Create isolated home directory for tests."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))
    monkeypatch.delenv("CARGO_HOME", raising=False)

    return fake_home
