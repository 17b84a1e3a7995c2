"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_DASHBUILDER_ENV_NAMES = (
    "DASHBUILDER_DATA_ROOT",
    "DASHBUILDER_STORE_BACKEND",
    "DASHBUILDER_MAX_CSV_LENGTH",
    "DASHBUILDER_DEPLOY_DIR",
    "DASHBUILDER_POLLING_TIME",
    "DASHBUILDER_COMMIT_AUTHOR",
)


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def _isolated_dashbuilder_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host DASHBUILDER_* settings out of test configs."""
    for name in _DASHBUILDER_ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
