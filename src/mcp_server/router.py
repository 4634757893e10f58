"""Tool Router for MCP Server.

Executes one tool call independent of how it arrived (JSON-RPC or the
REST convenience routes). Handles lookup, validation, bounded execution
and auditing.
"""

import asyncio
import time
from typing import Any, Optional

from shared.logging import get_logger
from shared.models import ToolResult, ToolResultStatus
from backends.base import BackendError
from mcp_server.audit import AuditLogger
from mcp_server.registry import ToolInvoker, ToolRegistry

logger = get_logger(__name__)


class ToolRouter:
    """
    Routes tool calls to their registered backends.

    Responsibilities:
    - Resolve tool names
    - Validate arguments against schemas
    - Bound every invocation with a timeout
    - Audit all executions
    """

    def __init__(
        self,
        registry: ToolRegistry,
        audit_logger: Optional[AuditLogger] = None,
        timeout_seconds: float = 30.0
    ) -> None:
        self.registry = registry
        self.audit_logger = audit_logger or AuditLogger(enabled=False)
        self.timeout_seconds = timeout_seconds

    async def execute(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        request_id: Optional[str] = None,
        source: str = "jsonrpc"
    ) -> ToolResult:
        """
        Execute a tool call.

        Args:
            tool_name: Registered tool name
            arguments: Tool arguments
            request_id: Caller's request id, for logs and audit
            source: Entry point, "jsonrpc" or "rest"

        Returns:
            Tool execution result; never raises
        """
        start_time = time.monotonic()

        logger.debug("Executing tool", tool=tool_name, request_id=request_id)

        invoker = self.registry.resolve(tool_name)
        if invoker is None:
            return ToolResult(
                tool_name=tool_name,
                status=ToolResultStatus.NOT_FOUND,
                error=f"Unknown tool: {tool_name}",
            )

        if not isinstance(arguments, dict):
            is_valid, errors = False, ["arguments must be an object"]
            arguments = {}
        else:
            is_valid, errors = self.registry.validate_input(tool_name, arguments)

        if not is_valid:
            result = ToolResult(
                tool_name=tool_name,
                status=ToolResultStatus.VALIDATION_ERROR,
                error=f"Validation failed: {'; '.join(errors)}",
            )
        else:
            result = await self._invoke(tool_name, invoker, arguments)

        result.execution_time_ms = (time.monotonic() - start_time) * 1000

        await self.audit_logger.log(result, arguments, request_id=request_id, source=source)

        return result

    async def _invoke(
        self,
        tool_name: str,
        invoker: ToolInvoker,
        arguments: dict[str, Any]
    ) -> ToolResult:
        try:
            data = await asyncio.wait_for(invoker(arguments), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Tool timed out", tool=tool_name, timeout_seconds=self.timeout_seconds)
            return ToolResult(
                tool_name=tool_name,
                status=ToolResultStatus.TIMEOUT,
                error=f"Tool '{tool_name}' timed out after {self.timeout_seconds}s",
            )
        except BackendError as e:
            logger.warning("Tool backend failed", tool=tool_name, error=e.message)
            return ToolResult(
                tool_name=tool_name,
                status=ToolResultStatus.ERROR,
                error=e.message,
                status_code=e.status_code,
            )
        except Exception as e:
            logger.error(
                "Tool execution failed",
                tool=tool_name,
                error=str(e),
                exc_info=True
            )
            return ToolResult(
                tool_name=tool_name,
                status=ToolResultStatus.ERROR,
                error=f"Tool '{tool_name}' failed: {type(e).__name__}",
            )

        return ToolResult(tool_name=tool_name, status=ToolResultStatus.SUCCESS, data=data)
