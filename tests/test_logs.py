"""Test logging setup and the syslog forwarder."""

import logging

from pkg_events.logs import NoticeSysLogHandler, setup_logging, syslog_log


def test_info_maps_to_notice():
    handler = NoticeSysLogHandler(address=("127.0.0.1", 514))
    try:
        assert handler.mapPriority("INFO") == "notice"
        assert handler.mapPriority("ERROR") == "error"
    finally:
        handler.close()


def test_unreachable_syslog_is_skipped(tmp_path, caplog):
    caplog.set_level(logging.WARNING, logger="pkg-events")
    setup_logging({"syslog": True, "syslog_address": str(tmp_path / "no-such-socket")})

    assert not any(isinstance(h, NoticeSysLogHandler) for h in syslog_log.handlers)
    assert any("Syslog unavailable" in r.getMessage() for r in caplog.records)


def test_setup_replaces_previous_forwarder():
    setup_logging({"syslog": True, "syslog_address": ("127.0.0.1", 514)})
    setup_logging({"syslog": True, "syslog_address": ("127.0.0.1", 514)})
    try:
        forwarders = [h for h in syslog_log.handlers if isinstance(h, NoticeSysLogHandler)]
        assert len(forwarders) == 1
    finally:
        setup_logging({"syslog": False})
    assert not any(isinstance(h, NoticeSysLogHandler) for h in syslog_log.handlers)
