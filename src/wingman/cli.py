"""CLI commands for inspecting and managing persisted state.

Provides subcommands for showing state, changing settings, toggling
features, and exporting, importing or clearing the store.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from .config import db_path_from_env
from .store import BucketStore

FEATURES = {
    "auto-decide": "auto_decide",
    "chat-assist": "chat_assist",
    "learn-type": "learn_type",
}


def _get_store() -> BucketStore:
    """Open the store at WINGMAN_DB_PATH (or the default location)."""
    store = BucketStore(db_path_from_env())
    store.init_db()
    return store


def _format_flag(enabled: bool) -> str:
    if enabled:
        return "\033[32mon\033[0m"
    return "\033[31moff\033[0m"


def _mask(key: str) -> str:
    if not key:
        return "(not set)"
    return f"{key[:4]}...{key[-4:]}" if len(key) > 8 else "****"


def _parse_value(raw: str) -> Any:
    """Parse a CLI value: booleans, numbers, otherwise the raw string."""
    lowered = raw.lower()
    if lowered in ("true", "on", "yes"):
        return True
    if lowered in ("false", "off", "no"):
        return False
    try:
        return int(raw)
    except ValueError:
        return raw


def cmd_state(args: argparse.Namespace) -> int:
    """Show settings, stats and learning progress."""
    store = _get_store()
    try:
        settings = store.get("settings")
        stats = store.get("stats")
        preferences = store.get("preferences")
        style = store.get("chat_style")
    finally:
        store.close()

    print("\nFeatures")
    print("-" * 40)
    for label, key in FEATURES.items():
        print(f"  {label:<14} {_format_flag(bool(settings.get(key)))}")
    print(f"  {'api key':<14} {_mask(settings.get('api_key') or '')}")

    print("\nStats")
    print("-" * 40)
    for key in ("decisions", "accepted", "rejected", "super_accepted", "chats", "suggestions", "sessions"):
        print(f"  {key:<14} {stats.get(key, 0)}")

    print("\nLearning")
    print("-" * 40)
    print(f"  {'liked':<14} {len(preferences.get('liked_history', []))}")
    print(f"  {'disliked':<14} {len(preferences.get('disliked_history', []))}")
    if preferences.get("type_summary"):
        print(f"  {'type':<14} {preferences['type_summary']}")
    print(f"  {'style samples':<14} {len(style.get('samples', []))}")
    print(f"  {'tone':<14} {style.get('tone')}")
    print()
    return 0


def cmd_settings(args: argparse.Namespace) -> int:
    """Show settings, or set one when a key and value are given."""
    store = _get_store()
    try:
        settings = store.get("settings")
        if args.key is None:
            for key, value in settings.items():
                shown = _mask(value) if key == "api_key" else value
                print(f"{key}: {shown}")
            return 0

        if args.key not in settings:
            print(f"Error: unknown setting '{args.key}'", file=sys.stderr)
            return 1
        if args.value is None:
            value = settings[args.key]
            print(_mask(value) if args.key == "api_key" else value)
            return 0

        value = args.value if args.key == "api_key" else _parse_value(args.value)
        store.update("settings", **{args.key: value})
        print(f"Set {args.key}")
        return 0
    finally:
        store.close()


def cmd_toggle(args: argparse.Namespace) -> int:
    """Turn a feature on or off."""
    key = FEATURES[args.feature]
    enabled = args.state == "on"
    store = _get_store()
    try:
        store.update("settings", **{key: enabled})
    finally:
        store.close()
    print(f"{args.feature}: {_format_flag(enabled)}")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Export all buckets as JSON to a file or stdout."""
    store = _get_store()
    try:
        payload = store.export_data()
    finally:
        store.close()

    if args.file is None:
        print(payload)
        return 0
    Path(args.file).write_text(payload, encoding="utf-8")
    print(f"Exported to {args.file}")
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    """Import buckets from an export file."""
    path = Path(args.file)
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    store = _get_store()
    try:
        written = store.import_data(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as e:
        print(f"Error: invalid export file: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

    if not written:
        print("Nothing to import.")
        return 1
    print(f"Imported: {', '.join(written)}")
    return 0


def cmd_clear(args: argparse.Namespace) -> int:
    """Delete all persisted state."""
    if not args.yes:
        print("Refusing to clear without --yes", file=sys.stderr)
        return 1
    store = _get_store()
    try:
        removed = store.clear()
    finally:
        store.close()
    print(f"Cleared {removed} bucket(s).")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the wingman CLI."""
    parser = argparse.ArgumentParser(
        prog="wingman",
        description="Inspect and manage Wingman state",
    )

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    subparsers.add_parser("state", help="Show settings, stats and learning progress")

    settings_parser = subparsers.add_parser("settings", help="Show or change settings")
    settings_parser.add_argument("key", nargs="?", help="Setting name")
    settings_parser.add_argument("value", nargs="?", help="New value")

    toggle_parser = subparsers.add_parser("toggle", help="Turn a feature on or off")
    toggle_parser.add_argument("feature", choices=sorted(FEATURES), help="Feature to toggle")
    toggle_parser.add_argument("state", choices=["on", "off"], help="New state")

    export_parser = subparsers.add_parser("export", help="Export state as JSON")
    export_parser.add_argument("file", nargs="?", help="Output file (stdout if omitted)")

    import_parser = subparsers.add_parser("import", help="Import state from JSON")
    import_parser.add_argument("file", help="File produced by 'export'")

    clear_parser = subparsers.add_parser("clear", help="Delete all state")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    return parser


def run_cli(argv: list[str] | None = None) -> int:
    """Run the CLI with given arguments.

    Args:
        argv: Command-line arguments. Uses sys.argv[1:] if None.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "state": cmd_state,
        "settings": cmd_settings,
        "toggle": cmd_toggle,
        "export": cmd_export,
        "import": cmd_import,
        "clear": cmd_clear,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)
