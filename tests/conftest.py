"""
Pytest configuration and shared fixtures
"""

from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from autotable_options.diagnostics import DiagnosticLog


@pytest.fixture
def diagnostics() -> DiagnosticLog:
    """A fresh diagnostic log."""
    return DiagnosticLog()


@pytest.fixture
def body_rows() -> list[list[Any]]:
    """Three body rows of two columns."""
    return [
        ['Donna', 'Sweden'],
        ['Janice', 'Finland'],
        ['Ruth', 'Denmark'],
    ]


@pytest.fixture
def write_yaml(tmp_path: Path) -> Callable[[str, Any], Path]:
    """Write data as YAML into the test's temporary directory."""
    def _write(name: str, data: Any) -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data), encoding='utf-8')
        return path
    return _write
