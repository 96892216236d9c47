"""
Logging setup.

Package lifecycle lines (installed / deinstalled / upgraded) go to the
"pkg-events.syslog" logger. When syslog is enabled in the config, that
logger forwards to the local syslog daemon at the "notice" priority.
"""

import logging
import logging.handlers
import os
from typing import Optional, Union

log = logging.getLogger("pkg-events")
syslog_log = logging.getLogger("pkg-events.syslog")

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class NoticeSysLogHandler(logging.handlers.SysLogHandler):
    """SysLogHandler that reports INFO records as LOG_NOTICE."""

    def mapPriority(self, levelName: str) -> str:
        if levelName == "INFO":
            return "notice"
        return super().mapPriority(levelName)


def _syslog_handler(address: Union[str, tuple]) -> Optional[logging.Handler]:
    if isinstance(address, str) and not os.path.exists(address):
        log.warning(f"Syslog unavailable at {address}: no such socket")
        return None
    try:
        handler = NoticeSysLogHandler(address=address)
    except OSError as e:
        log.warning(f"Syslog unavailable at {address}: {e}")
        return None
    handler.setFormatter(logging.Formatter("pkg: %(message)s"))
    return handler


def setup_logging(config: dict) -> None:
    """Configure root logging and the syslog forwarder from config."""
    level = str(config.get("log_level") or "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    setup_syslog(config)


def setup_syslog(config: dict) -> None:
    """Replace any syslog forwarder with one matching config["syslog"]."""
    syslog_log.setLevel(logging.INFO)
    for handler in list(syslog_log.handlers):
        if isinstance(handler, NoticeSysLogHandler):
            syslog_log.removeHandler(handler)
            handler.close()

    if config.get("syslog"):
        handler = _syslog_handler(config.get("syslog_address") or "/dev/log")
        if handler is not None:
            syslog_log.addHandler(handler)
