"""Shared test fixtures for Adapter Discovery tests."""

import os
import textwrap
from pathlib import Path

import pytest


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def write_tree(tmp_path):
    """Write a {relative path: source} mapping under tmp_path and return the root."""

    def _write(files: dict, root: Path = None) -> Path:
        base = root or tmp_path
        for relative, content in files.items():
            path = base / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return base

    return _write


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Run with an empty HOME and cwd so no stray config file or env var leaks in."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("ADAPTER_DISCOVERY_"):
            monkeypatch.delenv(key)
    return tmp_path
