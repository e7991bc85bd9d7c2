"""MCP streamable-HTTP front end for the flight tools.

Example:
    Start the server:
        $ uv run python -m flights_ui.mcp

    Custom host and port:
        $ uv run python -m flights_ui.mcp --host 0.0.0.0 --port 8080
"""

from flights_ui.mcp.server import RequestDispatcher, create_app, create_mcp_server
from flights_ui.mcp.sessions import (
    InvalidHandshakeError,
    Session,
    SessionManager,
    SessionNotFoundError,
    SessionState,
)

__all__ = [
    "RequestDispatcher",
    "create_app",
    "create_mcp_server",
    "InvalidHandshakeError",
    "Session",
    "SessionManager",
    "SessionNotFoundError",
    "SessionState",
]
