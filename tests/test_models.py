"""Test the package model accessors used by events."""

import pytest

from pkg_events.models import Dependency, Package, VersionChange, version_cmp


@pytest.mark.parametrize("a,b,expected", [
    ("1.0", "1.0", 0),
    ("1.0", "2.0", -1),
    ("1.10", "1.9", 1),
    ("1.0_1", "1.0", 1),
    ("1.0_1", "1.0_2", -1),
    ("1.0,1", "2.0", 1),
    ("1.0.b", "1.0.1", -1),
    ("1.0a", "1.0", 1),
])
def test_version_cmp(a, b, expected):
    assert version_cmp(a, b) == expected


def test_version_change():
    assert Package("foo", "2.0", old_version="1.0").version_change() is VersionChange.UPGRADE
    assert Package("foo", "1.0", old_version="2.0").version_change() is VersionChange.DOWNGRADE
    assert Package("foo", "1.0", old_version="1.0").version_change() is VersionChange.REINSTALL
    assert Package("foo", "1.0").version_change() is VersionChange.UPGRADE


def test_rdeps_is_fresh_each_call():
    pkg = Package("libfoo", "1.0", dependents=[Dependency("a", "1"), Dependency("b", "2")])
    first = list(pkg.rdeps())
    assert first == list(pkg.rdeps())
    assert [d.name for d in first] == ["a", "b"]
