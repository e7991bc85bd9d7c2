"""Flight search tools rendered as MCP-UI resources."""

__version__ = "1.0.0"
