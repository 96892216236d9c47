"""Test event dispatch, registration, the debug gate, and syslog lines."""

import errno
import io
import logging
import os
from types import SimpleNamespace

import pytest

from pkg_events import emitter as emitter_module
from pkg_events.emitter import EventEmitter, configure, format_message, get_emitter
from pkg_events.events import (
    DebugEvent,
    ErrnoEvent,
    ErrorEvent,
    EventType,
    NotFoundEvent,
    PluginErrorEvent,
)
from pkg_events.logs import NoticeSysLogHandler, setup_syslog, syslog_log
from pkg_events.models import Conflict, Dependency, Package, PackageFile
from pkg_events.plugins import Plugin, PluginManager


class Recorder:
    """Collects callback invocations."""

    def __init__(self, log=None, label="callback"):
        self.events = []
        self.contexts = []
        self.log = log
        self.label = label

    def __call__(self, context, event):
        self.contexts.append(context)
        self.events.append(event)
        if self.log is not None:
            self.log.append(self.label)
        return "ignored"


class PipeRecorder:
    def __init__(self, log=None):
        self.lines = []
        self.log = log

    def write(self, data: bytes):
        self.lines.append(data.decode("utf-8"))
        if self.log is not None:
            self.log.append("pipe")


def _plugin_manager(log=None, events=None):
    def on_event(event):
        if events is not None:
            events.append(event)
        if log is not None:
            log.append("plugin")

    manager = PluginManager()
    manager.add(Plugin(name="recorder", module=SimpleNamespace(on_event=on_event)))
    return manager


def _emit_every_kind(em: EventEmitter) -> None:
    pkg = Package(name="foo", version="2.0", old_version="1.0",
                  dependents=[Dependency("bar", "1.0")])
    plugin = Plugin(name="audit")
    em.emit_error("error %d", 1)
    em.emit_notice("notice")
    em.emit_developer_mode("dev %s", "mode")
    em.emit_errno("open", "/tmp/x", errno.ENOENT)
    em.debug(0, "trace")
    em.emit_fetching("http://example/foo.txz", 100, 10, 1.5)
    em.emit_install_begin(pkg)
    em.emit_install_finished(pkg)
    em.emit_deinstall_begin(pkg)
    em.emit_deinstall_finished(pkg)
    em.emit_upgrade_begin(pkg)
    em.emit_upgrade_finished(pkg)
    em.emit_integritycheck_begin()
    em.emit_integritycheck_conflict("foo", "2.0", "misc/foo", "/usr/local/foo",
                                    [Conflict("bar", "1.0", "misc/bar")])
    em.emit_integritycheck_finished()
    em.emit_locked(pkg)
    em.emit_required(pkg, True)
    em.emit_already_installed(pkg)
    em.emit_missing_dep(pkg, Dependency("baz", "0.1"))
    em.emit_noremotedb("FreeBSD")
    em.emit_nolocaldb()
    em.emit_newpkgversion()
    em.emit_file_mismatch(pkg, PackageFile("/usr/local/bin/foo"), "abc")
    em.plugin_errno(plugin, "fopen", "db", errno.EACCES)
    em.plugin_error(plugin, "failed: %s", "boom")
    em.plugin_info(plugin, "ready")
    em.emit_incremental_update(1, 2, 3, 6)
    em.emit_package_not_found("nope")


# ─────────────────────────────────────────────────────────────
# Dispatch
# ─────────────────────────────────────────────────────────────

def test_dispatch_order_plugin_callback_pipe(config):
    log = []
    em = EventEmitter(config, plugins=_plugin_manager(log), pipe=PipeRecorder(log))
    em.register(Recorder(log), None)

    em.emit_notice("hello")

    assert log == ["plugin", "callback", "pipe"]


def test_every_kind_reaches_plugins_without_callback_or_pipe(config):
    events = []
    em = EventEmitter(config, plugins=_plugin_manager(events=events))

    _emit_every_kind(em)

    assert {e.type for e in events} == set(EventType)


def test_every_kind_with_no_sinks_at_all(config):
    _emit_every_kind(EventEmitter(config))


def test_callback_receives_context_and_event(config):
    rec = Recorder()
    em = EventEmitter(config)
    ctx = object()
    em.register(rec, ctx)

    em.emit_error("disk %s is %d%% full", "/var", 99)

    assert rec.contexts == [ctx]
    assert rec.events == [ErrorEvent(msg="disk /var is 99% full")]


def test_register_last_wins_and_none_clears(config):
    first, second = Recorder(), Recorder()
    em = EventEmitter(config)
    em.register(first, "a")
    em.register(second, "b")
    em.emit_nolocaldb()
    assert first.events == []
    assert second.contexts == ["b"]

    em.register(None)
    em.emit_nolocaldb()
    assert len(second.events) == 1
    assert em.registration.callback is None


def test_failing_sinks_do_not_stop_later_sinks(config):
    def bad_plugin(event):
        raise RuntimeError("plugin broke")

    def bad_callback(context, event):
        raise RuntimeError("callback broke")

    manager = PluginManager()
    manager.add(Plugin(name="bad", module=SimpleNamespace(on_event=bad_plugin)))
    pipe = PipeRecorder()
    em = EventEmitter(config, plugins=manager, pipe=pipe)
    em.register(bad_callback)

    em.emit_notice("still delivered")

    assert pipe.lines == ['{ "type": "NOTICE", "data": {"msg": "still delivered"}}\n']


def test_pipe_write_errors_are_dropped(config):
    stream = io.BytesIO()
    stream.close()
    em = EventEmitter(config, pipe=stream)
    em.emit_notice("nobody listening")


def test_errno_event_on_pipe(config):
    pipe = PipeRecorder()
    em = EventEmitter(config, pipe=pipe)

    em.emit_errno("open", "/tmp/x", errno.ENOENT)

    assert pipe.lines == [
        '{ "type": "ERROR", "data": {"msg": "open(/tmp/x): %s","errno": 2}}\n'
        % os.strerror(errno.ENOENT)
    ]


def test_unserialized_kinds_reach_callback_but_not_pipe(config):
    config["debug_level"] = 5
    rec, pipe = Recorder(), PipeRecorder()
    em = EventEmitter(config, pipe=pipe)
    em.register(rec)

    em.debug(1, "trace")
    em.emit_package_not_found("nope")

    assert rec.events == [DebugEvent(level=1, msg="trace"), NotFoundEvent(pkg_name="nope")]
    assert pipe.lines == []


def test_pipe_to_file_descriptor(config, tmp_path):
    path = tmp_path / "events.log"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT)
    try:
        em = EventEmitter(config, pipe=fd)
        em.emit_integritycheck_begin()
    finally:
        os.close(fd)
    assert path.read_text() == '{ "type": "INFO_INTEGRITYCHECK_BEGIN", "data": {}}\n'


def test_negative_descriptor_disables_pipe(config):
    em = EventEmitter(config, pipe=-1)
    assert em.pipe is None
    em.emit_notice("no pipe")


def test_attach_pipe_to_fifo(config, tmp_path):
    fifo = tmp_path / "events.fifo"
    os.mkfifo(fifo)
    reader = os.open(fifo, os.O_RDONLY | os.O_NONBLOCK)
    em = EventEmitter(config)
    try:
        assert em.attach_pipe(str(fifo)) is True
        em.emit_nolocaldb()
        data = os.read(reader, 4096)
    finally:
        em.close()
        os.close(reader)

    assert data == b'{ "type": "ERROR_NOLOCALDB", "data": {}}\n'
    assert em.pipe is None


def test_attach_pipe_failure_emits_errno(config, tmp_path):
    rec = Recorder()
    em = EventEmitter(config, pipe=io.BytesIO())
    em.register(rec)
    missing = str(tmp_path / "no-such-dir" / "events.fifo")

    assert em.attach_pipe(missing) is False

    assert em.pipe is None
    assert rec.events == [ErrnoEvent(func="open event pipe", arg=missing, errnum=errno.ENOENT)]


def test_attach_pipe_creates_missing_file(config, tmp_path):
    path = tmp_path / "events.log"
    em = EventEmitter(config)
    try:
        assert em.attach_pipe(str(path)) is True
        em.emit_integritycheck_finished()
        em.emit_nolocaldb()
    finally:
        em.close()

    assert path.read_text() == (
        '{ "type": "INFO_INTEGRITYCHECK_FINISHED", "data": {}}\n'
        '{ "type": "ERROR_NOLOCALDB", "data": {}}\n'
    )


def test_short_writes_deliver_the_whole_line(config, monkeypatch):
    chunks = []

    def short_write(fd, data):
        piece = bytes(data[:7])
        chunks.append(piece)
        return len(piece)

    monkeypatch.setattr(emitter_module.os, "write", short_write)
    em = EventEmitter(config, pipe=99)

    em.emit_noremotedb("pkg.example.org")

    assert len(chunks) > 1
    assert b"".join(chunks) == (
        b'{ "type": "ERROR_NOREMOTEDB", "data": { "url": "pkg.example.org" }}\n'
    )


def test_unserializable_event_is_dropped_from_pipe_only(config, caplog):
    caplog.set_level(logging.ERROR, logger="pkg-events")
    rec, pipe = Recorder(), PipeRecorder()
    em = EventEmitter(config, pipe=pipe)
    em.register(rec)

    em.emit_fetching("http://example/foo.txz", "2048", "1024")

    assert [ev.type for ev in rec.events] == [EventType.FETCHING]
    assert pipe.lines == []
    assert any("fetching" in r.getMessage() for r in caplog.records)


# ─────────────────────────────────────────────────────────────
# Messages and the debug gate
# ─────────────────────────────────────────────────────────────

def test_format_message():
    assert format_message("100%%", ()) == "100%"
    assert format_message("100%", ()) is None
    assert format_message("%s-%s", ("foo", "1.0")) == "foo-1.0"
    assert format_message("%d", ("x",)) is None


def test_literal_percent_in_message(config):
    rec = Recorder()
    em = EventEmitter(config)
    em.register(rec)

    em.emit_error("disk 100%% full")
    em.emit_notice("%d%% done", 50)

    assert [ev.msg for ev in rec.events] == ["disk 100% full", "50% done"]


def test_bad_template_drops_event(config):
    rec = Recorder()
    em = EventEmitter(config)
    em.register(rec)

    em.emit_error("%d items", "many")

    assert rec.events == []


@pytest.mark.parametrize("threshold,level,delivered", [
    (0, 0, True),
    (0, 1, False),
    (2, 1, True),
    (2, 2, True),
    (2, 3, False),
])
def test_debug_gate(config, threshold, level, delivered):
    config["debug_level"] = threshold
    rec = Recorder()
    plugin_events = []
    em = EventEmitter(config, plugins=_plugin_manager(events=plugin_events))
    em.register(rec)

    em.debug(level, "level %d", level)

    expected = [DebugEvent(level=level, msg="level %d" % level)] if delivered else []
    assert rec.events == expected
    assert plugin_events == expected


def test_debug_gate_skips_formatting(config):
    class Exploding:
        def __str__(self):
            raise AssertionError("formatted below threshold")

    em = EventEmitter(config)
    em.debug(3, "%s", Exploding())


def test_debug_threshold_read_on_every_call(config):
    rec = Recorder()
    em = EventEmitter(config)
    em.register(rec)

    em.debug(1, "hidden")
    config["debug_level"] = 1
    em.debug(1, "shown")

    assert [e.msg for e in rec.events] == ["shown"]


def test_plugin_messages(config):
    rec = Recorder()
    em = EventEmitter(config)
    em.register(rec)
    plugin = Plugin(name="audit")

    em.plugin_error(plugin, "cannot open %s", "db")

    assert rec.events == [PluginErrorEvent(plugin=plugin, msg="cannot open db")]


# ─────────────────────────────────────────────────────────────
# Syslog
# ─────────────────────────────────────────────────────────────

def _syslog_messages(caplog):
    return [r.getMessage() for r in caplog.records if r.name == "pkg-events.syslog"]


def test_syslog_disabled_by_default(config, caplog, pkg):
    caplog.set_level(logging.INFO, logger="pkg-events.syslog")
    em = EventEmitter(config)
    em.emit_install_finished(pkg)
    assert _syslog_messages(caplog) == []


def test_syslog_install_and_deinstall(config, caplog, pkg):
    caplog.set_level(logging.INFO, logger="pkg-events.syslog")
    config["syslog"] = True
    em = EventEmitter(config)

    em.emit_install_finished(pkg)
    em.emit_deinstall_finished(pkg)

    assert _syslog_messages(caplog) == ["foo-2.0 installed", "foo-2.0 deinstalled"]


@pytest.mark.parametrize("old,new,expected", [
    ("1.0", "2.0", "foo upgraded: 1.0 -> 2.0 "),
    ("2.0", "1.0", "foo downgraded: 2.0 -> 1.0 "),
    ("2.0", "2.0", "foo reinstalled: 2.0 -> 2.0 "),
    (None, "2.0", "foo upgraded: 2.0  "),
])
def test_syslog_upgrade_finished(config, caplog, old, new, expected):
    caplog.set_level(logging.INFO, logger="pkg-events.syslog")
    config["syslog"] = True
    em = EventEmitter(config)

    em.emit_upgrade_finished(Package(name="foo", version=new, old_version=old))

    assert _syslog_messages(caplog) == [expected]


def test_syslog_written_before_dispatch(config, caplog, pkg):
    caplog.set_level(logging.INFO, logger="pkg-events.syslog")
    config["syslog"] = True
    seen = []
    em = EventEmitter(config)
    em.register(lambda ctx, ev: seen.append(list(_syslog_messages(caplog))))

    em.emit_install_finished(pkg)

    assert seen == [["foo-2.0 installed"]]


# ─────────────────────────────────────────────────────────────
# Default emitter
# ─────────────────────────────────────────────────────────────

def test_configure_replaces_default(config, monkeypatch):
    monkeypatch.setattr(emitter_module, "_emitter", None)
    em = configure(config)
    assert get_emitter() is em
    assert configure(config) is not em


def test_default_emitter_uses_configured_sinks(tmp_path, monkeypatch):
    events_log = tmp_path / "events.log"
    plugins_dir = tmp_path / "plugins"
    plugins_dir.mkdir()
    (plugins_dir / "tally.py").write_text("seen = []\n\ndef on_event(event):\n    seen.append(event)\n")
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"event_pipe: {events_log}\nplugins_dir: {plugins_dir}\n")
    monkeypatch.setenv("PKG_EVENTS_CONFIG", str(config_file))
    monkeypatch.setattr(emitter_module, "_emitter", None)

    em = get_emitter()
    try:
        em.emit_nolocaldb()
    finally:
        em.close()
        monkeypatch.setattr(emitter_module, "_emitter", None)

    assert events_log.read_text() == '{ "type": "ERROR_NOLOCALDB", "data": {}}\n'
    assert [p.name for p in em.plugins.plugins] == ["tally"]
    assert [ev.type for ev in em.plugins.plugins[0].module.seen] == [EventType.NOLOCALDB]


def test_from_config_attaches_syslog_forwarder(config):
    config["syslog"] = True
    config["syslog_address"] = ("127.0.0.1", 514)
    try:
        EventEmitter.from_config(config)
        assert any(isinstance(h, NoticeSysLogHandler) for h in syslog_log.handlers)
    finally:
        setup_syslog({"syslog": False})
    assert not any(isinstance(h, NoticeSysLogHandler) for h in syslog_log.handlers)
