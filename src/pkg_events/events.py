"""
Event Taxonomy

Every occurrence the package manager reports is one of the frozen
dataclasses below. Each class pins its kind through the class-level
``type`` attribute, so consumers can switch on ``event.type`` or on the
class itself.

Payloads reference package-model objects (see ``pkg_events.models``)
rather than copying their fields. They are only valid for the duration
of the emitting call.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Iterable, Optional


class EventType(str, Enum):
    ERROR = "error"
    NOTICE = "notice"
    DEVELOPER_MODE = "developer_mode"
    ERRNO = "errno"
    DEBUG = "debug"
    FETCHING = "fetching"
    INSTALL_BEGIN = "install_begin"
    INSTALL_FINISHED = "install_finished"
    DEINSTALL_BEGIN = "deinstall_begin"
    DEINSTALL_FINISHED = "deinstall_finished"
    UPGRADE_BEGIN = "upgrade_begin"
    UPGRADE_FINISHED = "upgrade_finished"
    INTEGRITYCHECK_BEGIN = "integritycheck_begin"
    INTEGRITYCHECK_CONFLICT = "integritycheck_conflict"
    INTEGRITYCHECK_FINISHED = "integritycheck_finished"
    LOCKED = "locked"
    REQUIRED = "required"
    ALREADY_INSTALLED = "already_installed"
    MISSING_DEP = "missing_dep"
    NOREMOTEDB = "noremotedb"
    NOLOCALDB = "nolocaldb"
    NEWPKGVERSION = "newpkgversion"
    FILE_MISMATCH = "file_mismatch"
    PLUGIN_ERRNO = "plugin_errno"
    PLUGIN_ERROR = "plugin_error"
    PLUGIN_INFO = "plugin_info"
    INCREMENTAL_UPDATE = "incremental_update"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Event:
    """Base class for all events."""
    type: ClassVar[EventType]


# ─────────────────────────────────────────────────────────────
# Generic messages
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ErrorEvent(Event):
    type: ClassVar[EventType] = EventType.ERROR
    msg: str


@dataclass(frozen=True)
class NoticeEvent(Event):
    type: ClassVar[EventType] = EventType.NOTICE
    msg: str


@dataclass(frozen=True)
class DeveloperModeEvent(Event):
    type: ClassVar[EventType] = EventType.DEVELOPER_MODE
    msg: str


@dataclass(frozen=True)
class ErrnoEvent(Event):
    """An OS call failed. ``errnum`` is the raw errno value."""
    type: ClassVar[EventType] = EventType.ERRNO
    func: str
    arg: Optional[str]
    errnum: int


@dataclass(frozen=True)
class DebugEvent(Event):
    type: ClassVar[EventType] = EventType.DEBUG
    level: int
    msg: str


# ─────────────────────────────────────────────────────────────
# Progress and lifecycle
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FetchingEvent(Event):
    type: ClassVar[EventType] = EventType.FETCHING
    url: str
    total: int
    done: int
    elapsed: float = 0


@dataclass(frozen=True)
class InstallBeginEvent(Event):
    type: ClassVar[EventType] = EventType.INSTALL_BEGIN
    pkg: Any


@dataclass(frozen=True)
class InstallFinishedEvent(Event):
    type: ClassVar[EventType] = EventType.INSTALL_FINISHED
    pkg: Any


@dataclass(frozen=True)
class DeinstallBeginEvent(Event):
    type: ClassVar[EventType] = EventType.DEINSTALL_BEGIN
    pkg: Any


@dataclass(frozen=True)
class DeinstallFinishedEvent(Event):
    type: ClassVar[EventType] = EventType.DEINSTALL_FINISHED
    pkg: Any


@dataclass(frozen=True)
class UpgradeBeginEvent(Event):
    type: ClassVar[EventType] = EventType.UPGRADE_BEGIN
    pkg: Any


@dataclass(frozen=True)
class UpgradeFinishedEvent(Event):
    type: ClassVar[EventType] = EventType.UPGRADE_FINISHED
    pkg: Any


@dataclass(frozen=True)
class IncrementalUpdateEvent(Event):
    type: ClassVar[EventType] = EventType.INCREMENTAL_UPDATE
    updated: int
    removed: int
    added: int
    processed: int


@dataclass(frozen=True)
class NewPkgVersionEvent(Event):
    type: ClassVar[EventType] = EventType.NEWPKGVERSION


# ─────────────────────────────────────────────────────────────
# Integrity checks
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class IntegrityCheckBeginEvent(Event):
    type: ClassVar[EventType] = EventType.INTEGRITYCHECK_BEGIN


@dataclass(frozen=True)
class IntegrityCheckConflictEvent(Event):
    """
    A file is claimed by more than one package.

    ``conflicts`` is an ordered iterable of ``Conflict`` records owned by
    the caller; it is read, never modified.
    """
    type: ClassVar[EventType] = EventType.INTEGRITYCHECK_CONFLICT
    pkg_name: str
    pkg_version: str
    pkg_origin: str
    pkg_path: str
    conflicts: Iterable[Any] = ()


@dataclass(frozen=True)
class IntegrityCheckFinishedEvent(Event):
    type: ClassVar[EventType] = EventType.INTEGRITYCHECK_FINISHED


# ─────────────────────────────────────────────────────────────
# Dependency and repository errors
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LockedEvent(Event):
    type: ClassVar[EventType] = EventType.LOCKED
    pkg: Any


@dataclass(frozen=True)
class RequiredEvent(Event):
    """``pkg`` cannot be removed because other packages depend on it."""
    type: ClassVar[EventType] = EventType.REQUIRED
    pkg: Any
    force: bool = False


@dataclass(frozen=True)
class AlreadyInstalledEvent(Event):
    type: ClassVar[EventType] = EventType.ALREADY_INSTALLED
    pkg: Any


@dataclass(frozen=True)
class MissingDepEvent(Event):
    type: ClassVar[EventType] = EventType.MISSING_DEP
    pkg: Any
    dep: Any


@dataclass(frozen=True)
class NoRemoteDbEvent(Event):
    type: ClassVar[EventType] = EventType.NOREMOTEDB
    repo: str


@dataclass(frozen=True)
class NoLocalDbEvent(Event):
    type: ClassVar[EventType] = EventType.NOLOCALDB


@dataclass(frozen=True)
class FileMismatchEvent(Event):
    type: ClassVar[EventType] = EventType.FILE_MISMATCH
    pkg: Any
    file: Any
    newsum: Optional[str] = None


@dataclass(frozen=True)
class NotFoundEvent(Event):
    type: ClassVar[EventType] = EventType.NOT_FOUND
    pkg_name: str


# ─────────────────────────────────────────────────────────────
# Plugins
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PluginErrnoEvent(Event):
    type: ClassVar[EventType] = EventType.PLUGIN_ERRNO
    plugin: Any
    func: str
    arg: Optional[str]
    errnum: int


@dataclass(frozen=True)
class PluginErrorEvent(Event):
    type: ClassVar[EventType] = EventType.PLUGIN_ERROR
    plugin: Any
    msg: str


@dataclass(frozen=True)
class PluginInfoEvent(Event):
    type: ClassVar[EventType] = EventType.PLUGIN_INFO
    plugin: Any
    msg: str


EVENT_CLASSES: dict[EventType, type] = {
    cls.type: cls
    for cls in (
        ErrorEvent, NoticeEvent, DeveloperModeEvent, ErrnoEvent, DebugEvent,
        FetchingEvent, InstallBeginEvent, InstallFinishedEvent,
        DeinstallBeginEvent, DeinstallFinishedEvent, UpgradeBeginEvent,
        UpgradeFinishedEvent, IntegrityCheckBeginEvent,
        IntegrityCheckConflictEvent, IntegrityCheckFinishedEvent, LockedEvent,
        RequiredEvent, AlreadyInstalledEvent, MissingDepEvent, NoRemoteDbEvent,
        NoLocalDbEvent, NewPkgVersionEvent, FileMismatchEvent, PluginErrnoEvent,
        PluginErrorEvent, PluginInfoEvent, IncrementalUpdateEvent, NotFoundEvent,
    )
}
