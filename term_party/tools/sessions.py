"""Session tools — list, create, kill, type into and inspect sessions.

The tools are built per host (no module-level state): call
build_session_tools(host) and hand the result to create_sdk_mcp_server().
"""

from __future__ import annotations

import json
from typing import Any

from claude_agent_sdk import SdkMcpTool, tool

from ..errors import SpawnError
from ..host import SessionHost


def build_session_tools(host: SessionHost) -> list[SdkMcpTool]:
    """Create the session tool set bound to `host`."""

    @tool(
        "list_sessions",
        """List every session in display order. Live sessions have integer ids;
saved (ghost) sessions have ids like "ghost-0" and no running process.""",
        {"type": "object", "properties": {}},
    )
    async def list_sessions_tool(args: dict[str, Any]) -> dict[str, Any]:
        sessions = host.list_sessions()
        if not sessions:
            return _text("No sessions.")
        return _text(json.dumps(sessions, indent=2))

    @tool(
        "create_session",
        """Start a new interactive shell session. `path` is the working
directory (defaults to the home directory). Returns the new session id.""",
        {
            "type": "object",
            "properties": {
                "path": {"type": "string"},
            },
        },
    )
    async def create_session_tool(args: dict[str, Any]) -> dict[str, Any]:
        try:
            created = await host.create_session(args.get("path") or None)
        except SpawnError as e:
            return _error(str(e))
        return _text(f"Started session {created['id']} ({created['title']}) in {created['workingDirectory']}.")

    @tool(
        "kill_session",
        "Kill a live session. Killing a session that already exited is not an error.",
        {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
            },
            "required": ["id"],
        },
    )
    async def kill_session_tool(args: dict[str, Any]) -> dict[str, Any]:
        session_id = _session_id(args)
        if session_id is None:
            return _error("id must be an integer session id")
        host.kill_session(session_id)
        return _text(f"Session {session_id} killed.")

    @tool(
        "write_input",
        """Send text to a live session. A newline is appended unless
enter=false. Input to a session that has exited is dropped.""",
        {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "text": {"type": "string"},
                "enter": {"type": "boolean"},
            },
            "required": ["id", "text"],
        },
    )
    async def write_input_tool(args: dict[str, Any]) -> dict[str, Any]:
        session_id = _session_id(args)
        if session_id is None:
            return _error("id must be an integer session id")
        if session_id not in host.registry:
            return _error(f"Session {session_id} is not running.")
        text = args.get("text", "")
        if args.get("enter", True):
            text += "\r"
        host.write_input(session_id, text)
        return _text("Input sent.")

    @tool(
        "read_tail",
        """Show the most recent output of a live session (last few KB, not
full scrollback). Omit id to get every live session.""",
        {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
            },
        },
    )
    async def read_tail_tool(args: dict[str, Any]) -> dict[str, Any]:
        tails = host.get_live_session_tails()
        if args.get("id") is not None:
            session_id = _session_id(args)
            tails = [t for t in tails if t["id"] == session_id]
            if not tails:
                return _error(f"Session {args.get('id')} is not running.")
        if not tails:
            return _text("No live sessions.")
        parts = [f"[session {t['id']}: {t['title']}]\n{t['tail']}" for t in tails]
        return _text("\n\n".join(parts))

    @tool(
        "rename_directory",
        """Set the display name for a working directory. Applies to every
session, saved session and favorite in that directory.""",
        {
            "type": "object",
            "properties": {
                "path": {"type": "string"},
                "name": {"type": "string"},
            },
            "required": ["path", "name"],
        },
    )
    async def rename_directory_tool(args: dict[str, Any]) -> dict[str, Any]:
        path = args.get("path", "")
        name = args.get("name", "")
        if not path or not name:
            return _error("path and name are required")
        host.rename_directory(path, name)
        return _text(f"{path} is now shown as {name!r}.")

    @tool(
        "exit_history",
        "Recently terminated sessions, newest first, with exit codes.",
        {"type": "object", "properties": {}},
    )
    async def exit_history_tool(args: dict[str, Any]) -> dict[str, Any]:
        history = host.get_exit_history()
        if not history:
            return _text("No sessions have exited.")
        return _text(json.dumps(history, indent=2))

    return [
        list_sessions_tool,
        create_session_tool,
        kill_session_tool,
        write_input_tool,
        read_tail_tool,
        rename_directory_tool,
        exit_history_tool,
    ]


def _session_id(args: dict[str, Any]) -> int | None:
    try:
        return int(args.get("id"))
    except (TypeError, ValueError):
        return None


def _text(text: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


def _error(text: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": f"Error: {text}"}], "is_error": True}
