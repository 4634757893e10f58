"""Tool backends.

Each backend contains:
- Tool descriptor (name, description, input schema)
- Query implementation over one data source

Backends are isolated: no shared mutable state, no calls between backends.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp_server.registry import ToolRegistry
    from shared.config import Settings


def load_all_backends(registry: "ToolRegistry", settings: "Settings") -> None:
    """
    Register every tool backend.

    Called once at MCP Server startup; the registration order is the
    order of the published catalog.
    """
    from backends.dataset import register_dataset_tools
    from backends.youtube import register_youtube_tools

    register_dataset_tools(registry, settings.dataset)
    register_youtube_tools(registry, settings.youtube)


__all__ = ["load_all_backends"]
