"""Command-line interface for pkg-events."""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from . import config as app_config
from .logs import setup_logging
from .monitor import watch
from .plugins import PluginManager
from .serializer import EVENT_CATALOG
from .version import __version__


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkg-events",
        description="Package manager event pipe tools",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"pkg-events {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to config file (default: platform config dir)",
    )

    parser.add_argument(
        "--print-defaults",
        action="store_true",
        help="Print default configuration as JSON and exit",
    )
    parser.add_argument(
        "--print-config-schema",
        action="store_true",
        help="Print configuration schema as JSON and exit",
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="Validate configuration file and exit",
    )
    parser.add_argument(
        "--print-resolved",
        action="store_true",
        help="Print resolved configuration as JSON and exit",
    )
    parser.add_argument(
        "--print-event-catalog",
        action="store_true",
        help="Print event pipe catalog as JSON and exit",
    )
    parser.add_argument(
        "--list-plugins",
        action="store_true",
        help="List plugins found in plugins_dir and exit",
    )
    parser.add_argument(
        "--monitor",
        metavar="PIPE",
        help="Print events read from an event pipe (FIFO, file, or - for stdin)",
    )

    return parser


def _emit_json(payload) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _handle_introspection(args: argparse.Namespace) -> Optional[int]:
    config_path = Path(args.config).expanduser() if args.config else None

    if args.print_defaults:
        _emit_json(app_config.config_defaults())
        return 0

    if args.print_config_schema:
        _emit_json(app_config.config_schema())
        return 0

    if args.validate_config:
        try:
            errors = app_config.validate_config_file(config_path)
        except ValueError as e:
            errors = [str(e)]
        if errors:
            for error in errors:
                print(error, file=sys.stderr)
            return 1
        return 0

    if args.print_resolved:
        _emit_json(app_config.load_config(config_path=config_path))
        return 0

    if args.print_event_catalog:
        _emit_json({"catalog": EVENT_CATALOG})
        return 0

    if args.list_plugins:
        resolved = app_config.load_config(config_path=config_path)
        plugins_dir = resolved.get("plugins_dir")
        manager = PluginManager([plugins_dir] if plugins_dir else [])
        for name in manager.list_plugins():
            print(name)
        return 0

    return None


def main(args: Optional[list[str]] = None) -> int:
    parser = create_argument_parser()
    parsed_args = parser.parse_args(args)

    result = _handle_introspection(parsed_args)
    if result is not None:
        return result

    if parsed_args.monitor:
        config_path = Path(parsed_args.config).expanduser() if parsed_args.config else None
        setup_logging(app_config.load_config(config_path=config_path))
        try:
            watch(parsed_args.monitor)
        except OSError as e:
            print(f"Cannot read {parsed_args.monitor}: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            pass
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
