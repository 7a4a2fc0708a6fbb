"""CLI for term-party's saved state.

Entry point: term-party [--data PATH] <subcommand> [args...]

Works on the persisted records only (saved sessions, favorites, directory
names), so it is safe to run while no host is up.
"""

import argparse
import json
import os
import sys
from pathlib import Path

from . import config
from .logging_config import setup_process_logging
from .names import DirectoryNameRegistry, normalize_path
from .persistence import PersistenceStore, SavedState


def _store() -> PersistenceStore:
    return PersistenceStore(config.state_dir())


def _save(store: PersistenceStore, state: SavedState) -> None:
    if not store.write_now(state):
        print(f"Error: could not write state under {store.state_dir}")
        sys.exit(1)


# --- Subcommands ---


def cmd_sessions(args):
    """List saved sessions (offered as ghosts on the next start)."""
    state = _store().load()
    names = DirectoryNameRegistry(state.names)
    if not state.sessions:
        print("No saved sessions.")
        return
    print("=== Saved Sessions ===")
    for index, record in enumerate(state.sessions):
        path = record["workingDirectory"]
        status = "ok" if Path(path).is_dir() else "MISSING"
        print(f"  [{index}] {names.resolve(path)}")
        print(f"      {path} [{status}]")


def cmd_forget(args):
    """Remove a saved session by index."""
    store = _store()
    state = store.load()
    if not 0 <= args.index < len(state.sessions):
        print(f"No saved session at index {args.index}.")
        return
    removed = state.sessions.pop(args.index)
    _save(store, state)
    print(f"Forgot {removed['workingDirectory']}.")


def cmd_rename(args):
    """Set the display name for a directory."""
    store = _store()
    state = store.load()
    names = DirectoryNameRegistry(state.names)
    names.rename(args.path, args.name)
    state.names = names.to_dict()
    _save(store, state)
    print(f"{normalize_path(args.path)} -> {args.name}")


def cmd_favorites(args):
    """List, add or remove favorite directories."""
    store = _store()
    state = store.load()
    paths = state.favorite_paths()

    if args.action == "add":
        key = normalize_path(args.path)
        if key in paths:
            print(f"{key} is already a favorite.")
            return
        state.favorites.append({"workingDirectory": key})
        _save(store, state)
        print(f"Added {key}.")
        return

    if args.action == "remove":
        key = normalize_path(args.path)
        if key not in paths:
            print(f"{key} is not a favorite.")
            return
        state.favorites = [f for f in state.favorites if f["workingDirectory"] != key]
        _save(store, state)
        print(f"Removed {key}.")
        return

    names = DirectoryNameRegistry(state.names)
    if not paths:
        print("No favorites.")
        return
    for path in paths:
        print(f"  {names.resolve(path)}  ({path})")


def cmd_config(args):
    """Print the effective settings."""
    settings = dict(config.get_settings())
    settings["shell"] = config.resolve_shell()
    settings["data_dir"] = str(config.data_dir())
    settings["scratchpad"] = str(config.scratchpad_dir())
    print(json.dumps(settings, indent=2))


def main():
    parser = argparse.ArgumentParser(
        prog="term-party",
        description="Manage term-party's saved sessions, favorites and directory names",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--data", "-d", help="Data directory (default: $TERM_PARTY_DATA or ~/.local/share/term-party)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sessions_parser = subparsers.add_parser("sessions", help="List saved sessions")
    sessions_parser.set_defaults(func=cmd_sessions)

    forget_parser = subparsers.add_parser("forget", help="Remove a saved session")
    forget_parser.add_argument("index", type=int, help="Index shown by 'sessions'")
    forget_parser.set_defaults(func=cmd_forget)

    rename_parser = subparsers.add_parser("rename", help="Set a directory's display name")
    rename_parser.add_argument("path", help="Working directory")
    rename_parser.add_argument("name", help="Display name")
    rename_parser.set_defaults(func=cmd_rename)

    favorites_parser = subparsers.add_parser("favorites", help="List or edit favorite directories")
    favorites_parser.add_argument("action", nargs="?", choices=["list", "add", "remove"], default="list")
    favorites_parser.add_argument("path", nargs="?", help="Directory (for add/remove)")
    favorites_parser.set_defaults(func=cmd_favorites)

    config_parser = subparsers.add_parser("config", help="Show effective settings")
    config_parser.set_defaults(func=cmd_config)

    args = parser.parse_args()

    if args.command == "favorites" and args.action in ("add", "remove") and not args.path:
        parser.error(f"favorites {args.action} needs a path")

    data_arg = args.data or os.environ.get("TERM_PARTY_DATA")
    config.init(Path(data_arg).expanduser() if data_arg else None)
    setup_process_logging("cli", level="WARNING", file=False)

    args.func(args)


if __name__ == "__main__":
    main()
