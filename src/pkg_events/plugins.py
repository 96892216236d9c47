"""
Plugin Manager - loads plugins and runs their hooks.

Plugins can be:
1. Single Python files (e.g., `audit.py`)
2. Plugin packages (folders with `__init__.py`)

Plugins load in alphabetical order. A plugin found in a later directory
replaces a same-named plugin from an earlier one.

Plugin Interface:
    NAME = "audit"                      # optional, defaults to file stem
    def init(context: dict) -> None     # optional, context has plugin, emitter
    def on_event(event) -> None         # called for every dispatched event
    def shutdown(context: dict) -> None # optional

Hook functions are named ``on_<hook>``. The event dispatcher only runs
the ``event`` hook.
"""

import importlib.util
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

log = logging.getLogger("pkg-events.plugins")

HOOK_EVENT = "event"


@dataclass(eq=False)
class Plugin:
    """A loaded plugin. ``module`` may be any object exposing hook functions."""
    name: str
    module: Any = None
    path: Optional[Path] = None
    context: dict = field(default_factory=dict)

    def hook(self, hook: str):
        if self.module is None:
            return None
        return getattr(self.module, f"on_{hook}", None)


def _load_module(name: str, file_path: Path, is_package: bool = False):
    """
    Dynamically load a Python module from a file path.

    Modules are registered under pkg_events_plugins.{name} to avoid
    polluting sys.modules with bare plugin names.
    """
    qualified_name = f"pkg_events_plugins.{name}"

    if is_package:
        spec = importlib.util.spec_from_file_location(
            qualified_name,
            file_path,
            submodule_search_locations=[str(file_path.parent)]
        )
    else:
        spec = importlib.util.spec_from_file_location(qualified_name, file_path)

    module = importlib.util.module_from_spec(spec)
    sys.modules[qualified_name] = module
    spec.loader.exec_module(module)
    return module


def discover(plugin_dirs: Iterable[Path]) -> list[tuple[str, Path, bool]]:
    """
    Find all plugins (single files and packages) sorted alphabetically.

    Returns:
        List of (plugin_name, plugin_file_path, is_package) tuples
    """
    found: dict[str, tuple[str, Path, bool]] = {}

    for plugin_dir in plugin_dirs:
        plugin_dir = Path(plugin_dir)
        if not plugin_dir.is_dir():
            continue

        for plugin_file in plugin_dir.glob("*.py"):
            if plugin_file.name.startswith("__"):
                continue
            found[plugin_file.stem] = (plugin_file.stem, plugin_file, False)

        for item in plugin_dir.iterdir():
            if item.is_dir() and not item.name.startswith("__"):
                init_file = item / "__init__.py"
                if init_file.exists():
                    found[item.name] = (item.name, init_file, True)

    return sorted(found.values(), key=lambda x: x[0])


class PluginManager:
    """
    Holds loaded plugins and invokes their hooks in load order.

    A failing plugin is logged and skipped; it never stops the others.
    """

    def __init__(self, plugin_dirs: Optional[Iterable[Path]] = None):
        self.plugin_dirs = [Path(d) for d in (plugin_dirs or [])]
        self._plugins: list[Plugin] = []

    @property
    def plugins(self) -> list[Plugin]:
        return list(self._plugins)

    def add(self, plugin: Plugin) -> Plugin:
        """Register an already constructed plugin."""
        self._plugins.append(plugin)
        return plugin

    def load(self, emitter=None) -> list[Plugin]:
        """
        Load every plugin found in the plugin directories.

        Args:
            emitter: EventEmitter handed to each plugin's init() so it
                can report plugin errors and info messages

        Returns:
            The plugins loaded by this call
        """
        loaded = []
        for name, plugin_file, is_package in discover(self.plugin_dirs):
            try:
                module = _load_module(name, plugin_file, is_package)
            except Exception as e:
                log.error(f"Failed to load plugin '{name}': {e}")
                continue

            plugin = Plugin(
                name=getattr(module, "NAME", name),
                module=module,
                path=plugin_file,
            )
            plugin.context = {"plugin": plugin, "emitter": emitter}

            init = getattr(module, "init", None)
            if init is not None:
                try:
                    init(plugin.context)
                except Exception as e:
                    log.error(f"Plugin '{plugin.name}' failed to initialize: {e}")
                    continue

            self._plugins.append(plugin)
            loaded.append(plugin)
            log.info(f"Loaded plugin: {plugin.name}")

        return loaded

    def run_hook(self, hook: str, data: Any) -> None:
        """Call on_{hook}(data) on every plugin that defines it."""
        for plugin in list(self._plugins):
            fn = plugin.hook(hook)
            if fn is None:
                continue
            try:
                fn(data)
            except Exception as e:
                log.error(f"Plugin '{plugin.name}' failed on {hook}: {e}")

    def shutdown(self) -> None:
        """Call shutdown() on all plugins and forget them."""
        for plugin in self._plugins:
            fn = getattr(plugin.module, "shutdown", None)
            if fn is None:
                continue
            try:
                fn(plugin.context)
                log.info(f"Shutdown: {plugin.name}")
            except Exception as e:
                log.error(f"Shutdown of plugin '{plugin.name}' failed: {e}")
        self._plugins.clear()

    def list_plugins(self) -> list[str]:
        """Return names of plugins available in the plugin directories."""
        return [name for name, _, _ in discover(self.plugin_dirs)]
