"""Test harness configuration.

This repo uses a `src/` layout. Ensure tests always import the in-repo code
even when an older `pkg_events` is installed.
"""

import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    src_path = str(Path(__file__).resolve().parents[1] / "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


@pytest.fixture()
def config(tmp_path) -> dict:
    from pkg_events.config import config_defaults

    defaults = config_defaults()
    defaults["plugins_dir"] = str(tmp_path / "plugins")
    return defaults


@pytest.fixture()
def pkg():
    from pkg_events.models import Package

    return Package(name="foo", version="2.0", old_version="1.0", message="Hello")
