"""
Package model accessors.

The package database owns the real package objects. Events only need a
handful of read accessors from them, so anything exposing the same
attributes works; these dataclasses are the concrete shapes used by the
CLI and the tests.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional


class VersionChange(str, Enum):
    DOWNGRADE = "downgraded"
    REINSTALL = "reinstalled"
    UPGRADE = "upgraded"


@dataclass(frozen=True)
class Dependency:
    name: str
    version: str
    origin: Optional[str] = None


@dataclass(frozen=True)
class Conflict:
    """One package claiming a path during an integrity check."""
    name: str
    version: str
    origin: str


@dataclass(frozen=True)
class PackageFile:
    path: str
    sum: Optional[str] = None


@dataclass
class Package:
    """
    A package as seen by the event layer.

    ``dependents`` holds the packages that require this one; ``rdeps()``
    hands out a fresh iterator over them on every call.
    """
    name: str
    version: str
    old_version: Optional[str] = None
    origin: Optional[str] = None
    message: Optional[str] = None
    dependents: list[Dependency] = field(default_factory=list)

    def rdeps(self) -> Iterator[Dependency]:
        return iter(list(self.dependents))

    def version_change(self) -> VersionChange:
        """Classify the move from ``old_version`` to ``version``."""
        if self.old_version is None:
            return VersionChange.UPGRADE
        cmp = version_cmp(self.old_version, self.version)
        if cmp > 0:
            return VersionChange.DOWNGRADE
        if cmp == 0:
            return VersionChange.REINSTALL
        return VersionChange.UPGRADE


_COMPONENT_RE = re.compile(r"\d+|[A-Za-z]+")


def _split_version(version: str) -> tuple[int, list, int]:
    """Split ``VERSION[_REVISION][,EPOCH]`` into (epoch, components, revision)."""
    epoch = 0
    revision = 0

    if "," in version:
        version, _, epoch_str = version.rpartition(",")
        epoch = int(epoch_str) if epoch_str.isdigit() else 0
    if "_" in version:
        version, _, rev_str = version.rpartition("_")
        revision = int(rev_str) if rev_str.isdigit() else 0

    components = []
    for token in _COMPONENT_RE.findall(version):
        # Letters sort before numbers at the same position: 1.0.b < 1.0.1
        if token.isdigit():
            components.append((1, int(token), ""))
        else:
            components.append((0, 0, token.lower()))
    return epoch, components, revision


def version_cmp(a: str, b: str) -> int:
    """
    Compare two package version strings.

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b
    """
    epoch_a, comps_a, rev_a = _split_version(a)
    epoch_b, comps_b, rev_b = _split_version(b)

    key_a = (epoch_a, comps_a, rev_a)
    key_b = (epoch_b, comps_b, rev_b)

    if key_a == key_b:
        return 0
    return -1 if key_a < key_b else 1
