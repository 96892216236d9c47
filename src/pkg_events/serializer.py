"""
Event Serializer - one JSON line per event for the event pipe.

Line format:
    { "type": "<TAG>", "data": {...}}

The byte layout of each line is part of the wire contract that external
monitors parse, so lines are assembled from fixed templates rather than
json.dumps(). String fields go through json_escape(); numbers and
booleans are written bare.

Kinds without a wire template (DEBUG, NOT_FOUND) serialize to None.
"""

import os
from typing import Any, Callable, Iterable, Optional

from .events import Event, EventType


def json_escape(value: Optional[str]) -> str:
    """
    Make a string safe to place between JSON double quotes.

    Only ``"`` and ``\\`` are escaped. Control characters and non-ASCII
    pass through untouched. None becomes an empty string.
    """
    if not value:
        return ""
    return str(value).replace("\\", "\\\\").replace('"', '\\"')


def _attr(obj: Any, name: str) -> str:
    return json_escape(getattr(obj, name, None))


def _errno_msg(func: str, arg: Optional[str], errnum: int) -> str:
    return "%s(%s): %s" % (
        json_escape(func),
        json_escape(arg),
        json_escape(os.strerror(errnum)),
    )


def _bool(value: Any) -> str:
    return "true" if value else "false"


def _pkg_fields(pkg: Any) -> str:
    return '"pkgname": "%s", "pkgversion": "%s"' % (
        _attr(pkg, "name"),
        _attr(pkg, "version"),
    )


def _upgrade_fields(pkg: Any) -> str:
    return '"pkgname": "%s", "pkgversion": "%s" ,"pkgnewversion": "%s"' % (
        _attr(pkg, "name"),
        _attr(pkg, "old_version"),
        _attr(pkg, "version"),
    )


def _required_by(pkg: Any) -> str:
    rdeps = getattr(pkg, "rdeps", None)
    deps: Iterable[Any] = rdeps() if callable(rdeps) else ()
    entries = [
        '{ "pkgname": "%s", "pkgversion": "%s" }' % (
            _attr(dep, "name"),
            _attr(dep, "version"),
        )
        for dep in deps
    ]
    return "[" + ", ".join(entries) + "]"


def _conflicts(conflicts: Optional[Iterable[Any]]) -> str:
    entries = [
        '{"name":"%s","version":"%s","origin":"%s"}' % (
            _attr(c, "name"),
            _attr(c, "version"),
            _attr(c, "origin"),
        )
        for c in (conflicts or ())
    ]
    return "[" + ",".join(entries) + "]"


def _line(tag: str, data: str) -> str:
    return '{ "type": "%s", "data": %s}' % (tag, data)


# ─────────────────────────────────────────────────────────────
# Per-kind templates
# ─────────────────────────────────────────────────────────────

def _ser_errno(ev) -> str:
    return _line("ERROR", '{"msg": "%s","errno": %d}' % (
        _errno_msg(ev.func, ev.arg, ev.errnum), ev.errnum))


def _ser_error(ev) -> str:
    return _line("ERROR", '{"msg": "%s"}' % json_escape(ev.msg))


def _ser_notice(ev) -> str:
    return _line("NOTICE", '{"msg": "%s"}' % json_escape(ev.msg))


def _ser_developer_mode(ev) -> str:
    return _line("ERROR", '{"msg": "DEVELOPER_MODE: %s"}' % json_escape(ev.msg))


def _ser_fetching(ev) -> str:
    return _line("INFO_FETCH", '{ "url": "%s", "fetched": %d, "total": %d}' % (
        json_escape(ev.url), ev.done, ev.total))


def _ser_install_finished(ev) -> str:
    return _line("INFO_INSTALL_FINISHED", '{ %s, "message": "%s"}' % (
        _pkg_fields(ev.pkg), _attr(ev.pkg, "message")))


def _ser_integritycheck_conflict(ev) -> str:
    return (
        '{ "type": "INFO_INTEGRITYCHECK_CONFLICT","data": { '
        '"pkgname": "%s", "pkgversion": "%s", "pkgorigin": "%s", '
        '"pkgpath": "%s", "conflicts": %s}}'
    ) % (
        json_escape(ev.pkg_name),
        json_escape(ev.pkg_version),
        json_escape(ev.pkg_origin),
        json_escape(ev.pkg_path),
        _conflicts(ev.conflicts),
    )


def _ser_required(ev) -> str:
    return _line("ERROR_REQUIRED", '{ %s, "force": %s, "required_by": %s}' % (
        _pkg_fields(ev.pkg), _bool(ev.force), _required_by(ev.pkg)))


def _ser_missing_dep(ev) -> str:
    return _line("ERROR_MISSING_DEP", '{ "depname": "%s", "depversion": "%s"}' % (
        _attr(ev.dep, "name"), _attr(ev.dep, "version")))


def _ser_noremotedb(ev) -> str:
    return _line("ERROR_NOREMOTEDB", '{ "url": "%s" }' % json_escape(ev.repo))


def _ser_file_mismatch(ev) -> str:
    return _line("ERROR_FILE_MISMATCH", '{ %s, "path": "%s"}' % (
        _pkg_fields(ev.pkg), _attr(ev.file, "path")))


def _ser_plugin_errno(ev) -> str:
    return _line("ERROR_PLUGIN", '{"plugin": "%s", "msg": "%s","errno": %d}' % (
        _attr(ev.plugin, "name"),
        _errno_msg(ev.func, ev.arg, ev.errnum),
        ev.errnum))


def _ser_plugin_message(tag: str) -> Callable[[Any], str]:
    def ser(ev) -> str:
        return _line(tag, '{"plugin": "%s", "msg": "%s"}' % (
            _attr(ev.plugin, "name"), json_escape(ev.msg)))
    return ser


def _ser_incremental_update(ev) -> str:
    return _line(
        "INFO_INCREMENTAL_UPDATE",
        '{"updated": %d, "removed": %d, "added": %d, "processed": %d}' % (
            ev.updated, ev.removed, ev.added, ev.processed),
    )


def _ser_pkg(tag: str) -> Callable[[Any], str]:
    def ser(ev) -> str:
        return _line(tag, "{ %s}" % _pkg_fields(ev.pkg))
    return ser


def _ser_upgrade(tag: str) -> Callable[[Any], str]:
    def ser(ev) -> str:
        return _line(tag, "{ %s}" % _upgrade_fields(ev.pkg))
    return ser


def _ser_empty(tag: str) -> Callable[[Any], str]:
    def ser(ev) -> str:
        return _line(tag, "{}")
    return ser


SERIALIZERS: dict[EventType, Callable[[Any], str]] = {
    EventType.ERRNO: _ser_errno,
    EventType.ERROR: _ser_error,
    EventType.NOTICE: _ser_notice,
    EventType.DEVELOPER_MODE: _ser_developer_mode,
    EventType.FETCHING: _ser_fetching,
    EventType.INSTALL_BEGIN: _ser_pkg("INFO_INSTALL_BEGIN"),
    EventType.INSTALL_FINISHED: _ser_install_finished,
    EventType.INTEGRITYCHECK_BEGIN: _ser_empty("INFO_INTEGRITYCHECK_BEGIN"),
    EventType.INTEGRITYCHECK_CONFLICT: _ser_integritycheck_conflict,
    EventType.INTEGRITYCHECK_FINISHED: _ser_empty("INFO_INTEGRITYCHECK_FINISHED"),
    EventType.DEINSTALL_BEGIN: _ser_pkg("INFO_DEINSTALL_BEGIN"),
    EventType.DEINSTALL_FINISHED: _ser_pkg("INFO_DEINSTALL_FINISHED"),
    EventType.UPGRADE_BEGIN: _ser_upgrade("INFO_UPGRADE_BEGIN"),
    EventType.UPGRADE_FINISHED: _ser_upgrade("INFO_UPGRADE_FINISHED"),
    EventType.LOCKED: _ser_pkg("ERROR_LOCKED"),
    EventType.REQUIRED: _ser_required,
    EventType.ALREADY_INSTALLED: _ser_pkg("ERROR_ALREADY_INSTALLED"),
    EventType.MISSING_DEP: _ser_missing_dep,
    EventType.NOREMOTEDB: _ser_noremotedb,
    EventType.NOLOCALDB: _ser_empty("ERROR_NOLOCALDB"),
    EventType.NEWPKGVERSION: _ser_empty("INFO_NEWPKGVERSION"),
    EventType.FILE_MISMATCH: _ser_file_mismatch,
    EventType.PLUGIN_ERRNO: _ser_plugin_errno,
    EventType.PLUGIN_ERROR: _ser_plugin_message("ERROR_PLUGIN"),
    EventType.PLUGIN_INFO: _ser_plugin_message("INFO_PLUGIN"),
    EventType.INCREMENTAL_UPDATE: _ser_incremental_update,
}

# Kinds that are dispatched to plugins and callbacks but have no pipe line
UNSERIALIZED = frozenset({EventType.DEBUG, EventType.NOT_FOUND})


def serialize(event: Event) -> Optional[str]:
    """
    Render an event as a single JSON line (without the newline).

    Returns:
        The line, or None for kinds that have no wire representation
    """
    ser = SERIALIZERS.get(event.type)
    if ser is None:
        return None
    return ser(event)


EVENT_CATALOG: list[dict] = [
    {"event": "errno", "tag": "ERROR", "data_fields": ["msg", "errno"]},
    {"event": "error", "tag": "ERROR", "data_fields": ["msg"]},
    {"event": "developer_mode", "tag": "ERROR", "data_fields": ["msg"]},
    {"event": "notice", "tag": "NOTICE", "data_fields": ["msg"]},
    {"event": "fetching", "tag": "INFO_FETCH", "data_fields": ["url", "fetched", "total"]},
    {"event": "install_begin", "tag": "INFO_INSTALL_BEGIN",
     "data_fields": ["pkgname", "pkgversion"]},
    {"event": "install_finished", "tag": "INFO_INSTALL_FINISHED",
     "data_fields": ["pkgname", "pkgversion", "message"]},
    {"event": "integritycheck_begin", "tag": "INFO_INTEGRITYCHECK_BEGIN", "data_fields": []},
    {"event": "integritycheck_conflict", "tag": "INFO_INTEGRITYCHECK_CONFLICT",
     "data_fields": ["pkgname", "pkgversion", "pkgorigin", "pkgpath", "conflicts"]},
    {"event": "integritycheck_finished", "tag": "INFO_INTEGRITYCHECK_FINISHED", "data_fields": []},
    {"event": "deinstall_begin", "tag": "INFO_DEINSTALL_BEGIN",
     "data_fields": ["pkgname", "pkgversion"]},
    {"event": "deinstall_finished", "tag": "INFO_DEINSTALL_FINISHED",
     "data_fields": ["pkgname", "pkgversion"]},
    {"event": "upgrade_begin", "tag": "INFO_UPGRADE_BEGIN",
     "data_fields": ["pkgname", "pkgversion", "pkgnewversion"]},
    {"event": "upgrade_finished", "tag": "INFO_UPGRADE_FINISHED",
     "data_fields": ["pkgname", "pkgversion", "pkgnewversion"]},
    {"event": "locked", "tag": "ERROR_LOCKED", "data_fields": ["pkgname", "pkgversion"]},
    {"event": "required", "tag": "ERROR_REQUIRED",
     "data_fields": ["pkgname", "pkgversion", "force", "required_by"]},
    {"event": "already_installed", "tag": "ERROR_ALREADY_INSTALLED",
     "data_fields": ["pkgname", "pkgversion"]},
    {"event": "missing_dep", "tag": "ERROR_MISSING_DEP", "data_fields": ["depname", "depversion"]},
    {"event": "noremotedb", "tag": "ERROR_NOREMOTEDB", "data_fields": ["url"]},
    {"event": "nolocaldb", "tag": "ERROR_NOLOCALDB", "data_fields": []},
    {"event": "newpkgversion", "tag": "INFO_NEWPKGVERSION", "data_fields": []},
    {"event": "file_mismatch", "tag": "ERROR_FILE_MISMATCH",
     "data_fields": ["pkgname", "pkgversion", "path"]},
    {"event": "plugin_errno", "tag": "ERROR_PLUGIN", "data_fields": ["plugin", "msg", "errno"]},
    {"event": "plugin_error", "tag": "ERROR_PLUGIN", "data_fields": ["plugin", "msg"]},
    {"event": "plugin_info", "tag": "INFO_PLUGIN", "data_fields": ["plugin", "msg"]},
    {"event": "incremental_update", "tag": "INFO_INCREMENTAL_UPDATE",
     "data_fields": ["updated", "removed", "added", "processed"]},
]
