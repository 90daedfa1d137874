"""Test fixtures for CargoKit tests.

This package provides reusable pytest fixtures for testing CargoKit components:

- workspaces: configuration document trees and an isolated cargo home

Import fixtures in your tests using:
    from tests.fixtures.workspaces import nested_workspace, write_config
"""

__all__ = [
    "workspaces",
]
