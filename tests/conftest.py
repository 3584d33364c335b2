"""
Pytest configuration and shared fixtures for the amalgam tests.

Every test gets its own fixture tree under tmp_path; nothing is shared
between tests because merges mutate the loaded modules.
"""

import sys
from pathlib import Path
from typing import Callable, Dict

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))
from tests.test_utils import write_tree


@pytest.fixture
def source_root(tmp_path) -> Path:
    """Empty source root for fixture packages."""
    root = tmp_path / "src"
    root.mkdir()
    return root


@pytest.fixture
def write_package(source_root) -> Callable[[Dict[str, str]], Path]:
    """Factory: write files under the source root and return the root."""
    def _write(files: Dict[str, str]) -> Path:
        return write_tree(source_root, files)
    return _write


def pytest_configure(config):
    """Register custom markers for test organization."""
    config.addinivalue_line(
        "markers", "integration: end-to-end merges of fixture packages"
    )
    config.addinivalue_line(
        "markers", "unit: single-component tests"
    )
