"""Agent-facing tool surface over a SessionHost.

Exposes session control as an in-process MCP server so an agent can open
shells, type into them and read their recent output:

    server = create_session_server(host)
    options = ClaudeAgentOptions(mcp_servers={"term-party": server})
"""

from claude_agent_sdk import create_sdk_mcp_server

from ..host import SessionHost
from .sessions import build_session_tools

SERVER_NAME = "term-party"
SERVER_VERSION = "0.1.0"


def create_session_server(host: SessionHost):
    """Build an MCP server config whose tools act on `host`."""
    return create_sdk_mcp_server(
        name=SERVER_NAME,
        version=SERVER_VERSION,
        tools=build_session_tools(host),
    )


__all__ = [
    "SERVER_NAME",
    "build_session_tools",
    "create_session_server",
]
