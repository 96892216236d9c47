"""Event notification and monitoring for package operations."""

from .emitter import EventEmitter, Registration, configure, get_emitter
from .events import Event, EventType
from .plugins import HOOK_EVENT, Plugin, PluginManager
from .serializer import json_escape, serialize
from .version import __version__

__all__ = [
    "Event",
    "EventEmitter",
    "EventType",
    "HOOK_EVENT",
    "Plugin",
    "PluginManager",
    "Registration",
    "configure",
    "get_emitter",
    "json_escape",
    "serialize",
    "__version__",
]
