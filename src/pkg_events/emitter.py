"""
Event emitter.

Internal operations call one emit_*() method per occurrence. Every event
is delivered, in this order, to:

1. loaded plugins (the "event" hook),
2. the registered callback, called as callback(context, event),
3. the event pipe, as one JSON line (see serializer.py).

A missing sink is skipped. A failing sink never stops the sinks after
it and never raises into the emitting operation.

Usage:
    emitter = EventEmitter(config, plugins=PluginManager([...]))
    emitter.register(on_event, ctx)
    emitter.attach_pipe("/var/run/pkg-events.fifo")
    emitter.emit_install_begin(pkg)
"""

import logging
import os
import socket
import stat
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from . import config as app_config
from .events import (
    AlreadyInstalledEvent,
    DebugEvent,
    DeinstallBeginEvent,
    DeinstallFinishedEvent,
    DeveloperModeEvent,
    ErrnoEvent,
    ErrorEvent,
    Event,
    FetchingEvent,
    FileMismatchEvent,
    IncrementalUpdateEvent,
    InstallBeginEvent,
    InstallFinishedEvent,
    IntegrityCheckBeginEvent,
    IntegrityCheckConflictEvent,
    IntegrityCheckFinishedEvent,
    LockedEvent,
    MissingDepEvent,
    NewPkgVersionEvent,
    NoLocalDbEvent,
    NoRemoteDbEvent,
    NoticeEvent,
    NotFoundEvent,
    PluginErrnoEvent,
    PluginErrorEvent,
    PluginInfoEvent,
    RequiredEvent,
    UpgradeBeginEvent,
    UpgradeFinishedEvent,
)
from .logs import setup_syslog, syslog_log
from .models import VersionChange
from .plugins import HOOK_EVENT, PluginManager
from .serializer import serialize

log = logging.getLogger("pkg-events")

EventCallback = Callable[[Any, Event], Any]


@dataclass(frozen=True)
class Registration:
    callback: Optional[EventCallback] = None
    context: Any = None


def format_message(fmt: str, args: tuple) -> Optional[str]:
    """
    Interpolate a printf-style template.

    The template is always interpolated, so a literal percent sign is
    written as ``%%`` even when no arguments are given.

    Returns:
        The formatted message, or None if formatting failed (the failure
        is logged and the caller should drop the event)
    """
    try:
        return fmt % args
    except (TypeError, ValueError, MemoryError) as e:
        log.error(f"Dropping event, cannot format {fmt!r}: {e}")
        return None


class EventEmitter:
    """
    Owns the event sinks for one process.

    Holds a single callback registration; register() replaces it and
    register(None) clears it. Registration is not thread-safe: register
    from one thread only, normally once at startup.

    ``config`` is read at every emission that needs it (syslog,
    debug_level), so changes to the mapping apply immediately.
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        plugins: Optional[PluginManager] = None,
        pipe: Any = None,
    ):
        self.config = config if config is not None else app_config.config_defaults()
        self.plugins = plugins
        self._registration = Registration()
        self._pipe: Any = None
        self._owned_fd: Optional[int] = None
        self._owned_socket: Optional[socket.socket] = None
        self.set_pipe(pipe)

    @classmethod
    def from_config(cls, config: dict) -> "EventEmitter":
        """
        Build an emitter with every sink the config names.

        Sets up the syslog forwarder, loads plugins from ``plugins_dir``
        and attaches ``event_pipe`` when it is set.
        """
        setup_syslog(config)
        plugins_dir = config.get("plugins_dir")
        plugins = PluginManager([plugins_dir] if plugins_dir else [])
        emitter = cls(config, plugins=plugins)
        plugins.load(emitter)
        event_pipe = config.get("event_pipe")
        if event_pipe:
            emitter.attach_pipe(str(event_pipe))
        return emitter

    # ─────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────

    def register(self, callback: Optional[EventCallback], context: Any = None) -> None:
        """Set the process-wide callback. The last call wins."""
        self._registration = Registration(callback, context)

    @property
    def registration(self) -> Registration:
        return self._registration

    # ─────────────────────────────────────────────────────────
    # Pipe
    # ─────────────────────────────────────────────────────────

    @property
    def pipe(self) -> Any:
        return self._pipe

    def set_pipe(self, target: Any) -> None:
        """
        Set the event pipe.

        Args:
            target: None to disable, a file descriptor, or a writable
                binary stream. Negative descriptors disable the pipe.
        """
        if isinstance(target, int) and not isinstance(target, bool) and target < 0:
            target = None
        self._pipe = target

    def attach_pipe(self, path: str) -> bool:
        """
        Open ``path`` as the event pipe.

        UNIX sockets are connected; anything else (normally a FIFO) is
        opened write-only, non-blocking and appending, and a missing path
        is created as a plain file. On failure an errno event is emitted
        and the pipe stays unset.

        Returns:
            True if the pipe was attached
        """
        self.close()
        try:
            if os.path.exists(path) and stat.S_ISSOCK(os.stat(path).st_mode):
                sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                try:
                    sock.connect(path)
                except OSError:
                    sock.close()
                    raise
                self._owned_socket = sock
                self.set_pipe(sock.fileno())
            else:
                fd = os.open(
                    path,
                    os.O_WRONLY | os.O_NONBLOCK | os.O_APPEND | os.O_CREAT,
                    0o644,
                )
                self._owned_fd = fd
                self.set_pipe(fd)
        except OSError as e:
            self.set_pipe(None)
            self.emit_errno("open event pipe", path, e.errno or 0)
            return False
        log.debug(f"Event pipe attached: {path}")
        return True

    def close(self) -> None:
        """Close a pipe opened by attach_pipe()."""
        if self._owned_socket is not None:
            self._owned_socket.close()
            self._owned_socket = None
            self._pipe = None
        if self._owned_fd is not None:
            try:
                os.close(self._owned_fd)
            except OSError:
                pass
            self._owned_fd = None
            self._pipe = None

    def _write_pipe(self, event: Event) -> None:
        if self._pipe is None:
            return
        try:
            line = serialize(event)
        except Exception as e:
            log.error(f"Dropping {event.type.value} event, cannot serialize: {e}")
            return
        if line is None:
            return
        data = (line + "\n").encode("utf-8", errors="replace")
        try:
            if isinstance(self._pipe, int):
                # Non-blocking descriptors may take a line in pieces
                view = memoryview(data)
                while view:
                    written = os.write(self._pipe, view)
                    view = view[written:]
            else:
                self._pipe.write(data)
                flush = getattr(self._pipe, "flush", None)
                if flush is not None:
                    flush()
        except (OSError, ValueError):
            # Monitor went away or the stream is closed
            pass

    # ─────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────

    def dispatch(self, event: Event) -> None:
        """Deliver a fully built event to plugins, callback, then pipe."""
        if self.plugins is not None:
            self.plugins.run_hook(HOOK_EVENT, event)

        callback, context = self._registration.callback, self._registration.context
        if callback is not None:
            try:
                callback(context, event)
            except Exception as e:
                log.error(f"Event callback failed on {event.type.value}: {e}")

        self._write_pipe(event)

    def _emit_message(self, factory: Callable[[str], Event], fmt: str, args: tuple) -> None:
        msg = format_message(fmt, args)
        if msg is None:
            return
        self.dispatch(factory(msg))

    def _syslog_enabled(self) -> bool:
        return bool(self.config.get("syslog", False))

    # ─────────────────────────────────────────────────────────
    # Messages
    # ─────────────────────────────────────────────────────────

    def emit_error(self, fmt: str, *args) -> None:
        self._emit_message(ErrorEvent, fmt, args)

    def emit_notice(self, fmt: str, *args) -> None:
        self._emit_message(NoticeEvent, fmt, args)

    def emit_developer_mode(self, fmt: str, *args) -> None:
        self._emit_message(DeveloperModeEvent, fmt, args)

    def emit_errno(self, func: str, arg: Optional[str], errnum: int) -> None:
        """Report a failed OS call, e.g. emit_errno("open", path, e.errno)."""
        self.dispatch(ErrnoEvent(func=func, arg=arg, errnum=errnum))

    def debug(self, level: int, fmt: str, *args) -> None:
        """
        Emit a debug trace if ``level`` is within the configured debug_level.

        Below the threshold nothing is formatted or dispatched.
        """
        try:
            threshold = int(self.config.get("debug_level") or 0)
        except (TypeError, ValueError):
            threshold = 0
        if threshold < level:
            return
        self._emit_message(lambda msg: DebugEvent(level=level, msg=msg), fmt, args)

    # ─────────────────────────────────────────────────────────
    # Progress and lifecycle
    # ─────────────────────────────────────────────────────────

    def emit_fetching(self, url: str, total: int, done: int, elapsed: float = 0) -> None:
        self.dispatch(FetchingEvent(url=url, total=total, done=done, elapsed=elapsed))

    def emit_install_begin(self, pkg) -> None:
        self.dispatch(InstallBeginEvent(pkg=pkg))

    def emit_install_finished(self, pkg) -> None:
        if self._syslog_enabled():
            syslog_log.info("%s-%s installed", pkg.name, pkg.version)
        self.dispatch(InstallFinishedEvent(pkg=pkg))

    def emit_deinstall_begin(self, pkg) -> None:
        self.dispatch(DeinstallBeginEvent(pkg=pkg))

    def emit_deinstall_finished(self, pkg) -> None:
        if self._syslog_enabled():
            syslog_log.info("%s-%s deinstalled", pkg.name, pkg.version)
        self.dispatch(DeinstallFinishedEvent(pkg=pkg))

    def emit_upgrade_begin(self, pkg) -> None:
        self.dispatch(UpgradeBeginEvent(pkg=pkg))

    def emit_upgrade_finished(self, pkg) -> None:
        if self._syslog_enabled():
            old = getattr(pkg, "old_version", None)
            action = VersionChange(pkg.version_change()).value
            if old is not None:
                syslog_log.info("%s %s: %s -> %s ", pkg.name, action, old, pkg.version)
            else:
                # No arrow, and the line keeps two trailing blanks
                syslog_log.info("%s %s: %s  ", pkg.name, action, pkg.version)
        self.dispatch(UpgradeFinishedEvent(pkg=pkg))

    def emit_incremental_update(self, updated: int, removed: int, added: int, processed: int) -> None:
        self.dispatch(IncrementalUpdateEvent(
            updated=updated, removed=removed, added=added, processed=processed,
        ))

    def emit_newpkgversion(self) -> None:
        self.dispatch(NewPkgVersionEvent())

    # ─────────────────────────────────────────────────────────
    # Integrity checks
    # ─────────────────────────────────────────────────────────

    def emit_integritycheck_begin(self) -> None:
        self.dispatch(IntegrityCheckBeginEvent())

    def emit_integritycheck_conflict(
        self,
        name: str,
        version: str,
        origin: str,
        path: str,
        conflicts: Iterable[Any],
    ) -> None:
        self.dispatch(IntegrityCheckConflictEvent(
            pkg_name=name,
            pkg_version=version,
            pkg_origin=origin,
            pkg_path=path,
            conflicts=conflicts,
        ))

    def emit_integritycheck_finished(self) -> None:
        self.dispatch(IntegrityCheckFinishedEvent())

    # ─────────────────────────────────────────────────────────
    # Dependency and repository errors
    # ─────────────────────────────────────────────────────────

    def emit_locked(self, pkg) -> None:
        self.dispatch(LockedEvent(pkg=pkg))

    def emit_required(self, pkg, force: bool = False) -> None:
        self.dispatch(RequiredEvent(pkg=pkg, force=bool(force)))

    def emit_already_installed(self, pkg) -> None:
        self.dispatch(AlreadyInstalledEvent(pkg=pkg))

    def emit_missing_dep(self, pkg, dep) -> None:
        self.dispatch(MissingDepEvent(pkg=pkg, dep=dep))

    def emit_noremotedb(self, repo: str) -> None:
        self.dispatch(NoRemoteDbEvent(repo=repo))

    def emit_nolocaldb(self) -> None:
        self.dispatch(NoLocalDbEvent())

    def emit_file_mismatch(self, pkg, file, newsum: Optional[str] = None) -> None:
        self.dispatch(FileMismatchEvent(pkg=pkg, file=file, newsum=newsum))

    def emit_package_not_found(self, name: str) -> None:
        self.dispatch(NotFoundEvent(pkg_name=name))

    # ─────────────────────────────────────────────────────────
    # Plugins
    # ─────────────────────────────────────────────────────────

    def plugin_errno(self, plugin, func: str, arg: Optional[str], errnum: int) -> None:
        self.dispatch(PluginErrnoEvent(plugin=plugin, func=func, arg=arg, errnum=errnum))

    def plugin_error(self, plugin, fmt: str, *args) -> None:
        self._emit_message(lambda msg: PluginErrorEvent(plugin=plugin, msg=msg), fmt, args)

    def plugin_info(self, plugin, fmt: str, *args) -> None:
        self._emit_message(lambda msg: PluginInfoEvent(plugin=plugin, msg=msg), fmt, args)


# ─────────────────────────────────────────────────────────────
# Process-wide default
# ─────────────────────────────────────────────────────────────

_emitter: Optional[EventEmitter] = None


def configure(
    config: Optional[dict] = None,
    plugins: Optional[PluginManager] = None,
    pipe: Any = None,
) -> EventEmitter:
    """
    Replace the default emitter. Call once at startup.

    With only ``config`` given, the sinks it names (syslog, plugins,
    event pipe) are set up as in EventEmitter.from_config().
    """
    global _emitter
    if _emitter is not None:
        _emitter.close()
    if config is not None and plugins is None and pipe is None:
        _emitter = EventEmitter.from_config(config)
    else:
        _emitter = EventEmitter(config, plugins=plugins, pipe=pipe)
    return _emitter


def get_emitter() -> EventEmitter:
    """Get the default emitter, creating it from the loaded config if needed."""
    global _emitter
    if _emitter is None:
        _emitter = EventEmitter.from_config(app_config.load_config())
    return _emitter
