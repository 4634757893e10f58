"""MCP Server - Tool registry, authentication, and execution routing.

The MCP Server is the authoritative component for tool execution.
It registers tools, gates access with a shared bearer secret, speaks
JSON-RPC 2.0 to MCP clients, routes calls to backends, and audits all
executions.
"""

from mcp_server.registry import ToolRegistry
from mcp_server.router import ToolRouter
from mcp_server.dispatcher import ProtocolDispatcher
from mcp_server.auth import AuthGate, auth_middleware
from mcp_server.audit import AuditLogger
from mcp_server.keepalive import KeepaliveTask

__all__ = [
    "ToolRegistry",
    "ToolRouter",
    "ProtocolDispatcher",
    "AuthGate",
    "auth_middleware",
    "AuditLogger",
    "KeepaliveTask",
]
