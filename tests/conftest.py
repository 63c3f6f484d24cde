"""
Shared test fixtures and configuration.
"""

import shutil
from collections.abc import Callable
from pathlib import Path

import pytest

from conductor.core.project import Project


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def example_root(tmp_path: Path, fixtures_dir: Path) -> Callable[[str], Path]:
    """Copy a fixture project into tmp_path and return its root."""

    def _copy(name: str) -> Path:
        root = tmp_path / "projects" / name
        shutil.copytree(fixtures_dir / name, root)
        return root

    return _copy


@pytest.fixture
def make_project(tmp_path: Path, example_root) -> Callable[[str], Project]:
    """Build a Project from a fixture, with src/output dirs under tmp_path."""

    def _make(name: str) -> Project:
        root = example_root(name)
        test_output = tmp_path / "test_output" / name
        return Project.from_dirs(root, test_output / "src", test_output)

    return _make
