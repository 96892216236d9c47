"""
Pipe monitor - reads the JSON event lines written to the event pipe.

This is the consumer side of the pipe sink: point the package manager's
event_pipe at a FIFO, then run `pkg-events --monitor FIFO` to watch
operations as they happen.
"""

import json
import logging
import sys
from typing import IO, Iterator, Optional

log = logging.getLogger("pkg-events.monitor")


def read_events(stream: IO[str]) -> Iterator[dict]:
    """Yield each well-formed event from a stream of JSON lines."""
    for line in stream:
        line = line.strip()
        if not line:
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError as e:
            log.error(f"Invalid JSON in event line: {e}")
            continue
        if not isinstance(event, dict) or "type" not in event:
            log.warning(f"Skipping line without event type: {line[:80]}")
            continue
        yield event


def _format_value(value) -> str:
    if isinstance(value, list):
        return "[" + ", ".join(_format_value(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{" + " ".join(f"{k}={_format_value(v)}" for k, v in value.items()) + "}"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_event(event: dict) -> str:
    """Render an event as ``TYPE key=value ...``."""
    data = event.get("data") or {}
    parts = [str(event.get("type"))]
    parts.extend(f"{key}={_format_value(value)}" for key, value in data.items())
    return " ".join(parts)


def watch(path: str, out: Optional[IO[str]] = None) -> int:
    """
    Print every event read from ``path`` until the writer closes it.

    Args:
        path: File or FIFO to read, "-" for stdin
        out: Where to print (default: stdout)

    Returns:
        Number of events printed
    """
    out = out or sys.stdout
    count = 0

    if path == "-":
        stream = sys.stdin
        close = False
    else:
        stream = open(path, "r", encoding="utf-8", errors="replace")
        close = True

    try:
        for event in read_events(stream):
            print(format_event(event), file=out, flush=True)
            count += 1
    finally:
        if close:
            stream.close()

    log.info(f"Monitor finished after {count} events")
    return count
