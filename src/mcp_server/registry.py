"""Tool Registry for MCP Server.

Maps tool names to their descriptors and backend invokers. Tools are
registered once at startup; the registry is read-only afterwards.
"""

from typing import Any, Awaitable, Callable, NamedTuple, Optional

from shared.logging import get_logger
from shared.models import ToolDescriptor
from shared.schema import validate_schema
from backends.base import ToolBackend

logger = get_logger(__name__)


# Runs one tool call; raises BackendError on failure
ToolInvoker = Callable[[dict[str, Any]], Awaitable[list[dict[str, Any]]]]


class RegisteredTool(NamedTuple):
    descriptor: ToolDescriptor
    invoker: ToolInvoker


class ToolRegistry:
    """
    Central registry for all MCP tools.

    Responsibilities:
    - Register tools with their backend invokers
    - Publish the catalog in registration order
    - Lookup tools by name
    - Validate tool arguments against declared schemas
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register_tool(self, descriptor: ToolDescriptor, invoker: ToolInvoker) -> None:
        """
        Register a tool in the registry.

        Args:
            descriptor: Published tool descriptor
            invoker: Coroutine function running the tool

        Raises:
            ValueError: If tool name is already registered
        """
        if descriptor.name in self._tools:
            raise ValueError(f"Tool '{descriptor.name}' is already registered")

        self._tools[descriptor.name] = RegisteredTool(descriptor, invoker)

        logger.info("Tool registered", tool=descriptor.name)

    def register(self, backend: ToolBackend) -> None:
        """Register a backend under its own descriptor."""
        self.register_tool(backend.descriptor, backend.invoke)

    def resolve(self, tool_name: str) -> Optional[ToolInvoker]:
        """Return the invoker for a tool, or None if it is not registered."""
        tool = self._tools.get(tool_name)
        return tool.invoker if tool else None

    def get(self, tool_name: str) -> Optional[ToolDescriptor]:
        """Return the descriptor for a tool, or None if it is not registered."""
        tool = self._tools.get(tool_name)
        return tool.descriptor if tool else None

    def list_tools(self) -> list[ToolDescriptor]:
        """List all registered tools in registration order."""
        return [tool.descriptor for tool in self._tools.values()]

    def catalog(self) -> list[dict[str, Any]]:
        """The tool catalog as published by ``tools/list`` and the manifest."""
        return [descriptor.to_wire() for descriptor in self.list_tools()]

    def validate_input(
        self,
        tool_name: str,
        arguments: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """
        Validate arguments against the tool's input schema.

        Args:
            tool_name: Registered tool name
            arguments: Arguments to validate

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        descriptor = self.get(tool_name)
        if not descriptor:
            return False, [f"Tool '{tool_name}' not found"]

        return validate_schema(arguments, descriptor.input_schema)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._tools
