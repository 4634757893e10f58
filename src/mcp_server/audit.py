"""Audit logging for MCP Server.

Logs every executed tool call for debugging and usage review.
Captures: tool, request id, arguments, timestamp, outcome.
"""

import asyncio
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import aiofiles

from shared.logging import get_logger
from shared.models import AuditEntry, ToolResult

logger = get_logger(__name__)


class AuditLogger:
    """
    Audit logger for MCP tool executions.

    Entries go to the structured log immediately and to a JSON-lines file
    in batches of ``buffer_size``.
    """

    # Arguments that should be redacted in audit logs
    SENSITIVE_ARGS = {"password", "token", "secret", "api_key", "apikey", "key", "credential"}

    def __init__(
        self,
        log_path: str = "logs/audit.log",
        enabled: bool = True,
        buffer_size: int = 100
    ) -> None:
        self.log_path = Path(log_path)
        self.enabled = enabled
        self.buffer_size = buffer_size
        self._buffer: list[AuditEntry] = []
        self._lock = asyncio.Lock()

        if enabled:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _redact_sensitive(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive arguments from audit logs."""
        redacted = {}
        for key, value in arguments.items():
            if key.lower() in self.SENSITIVE_ARGS:
                redacted[key] = "[REDACTED]"
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive(value)
            else:
                redacted[key] = value
        return redacted

    def create_entry(
        self,
        result: ToolResult,
        arguments: dict[str, Any],
        request_id: Optional[str] = None,
        source: str = "jsonrpc"
    ) -> AuditEntry:
        return AuditEntry(
            id=str(uuid.uuid4()),
            timestamp=datetime.utcnow(),
            tool_name=result.tool_name,
            request_id=request_id,
            source=source,
            arguments=self._redact_sensitive(arguments),
            status=result.status,
            error=result.error,
            execution_time_ms=result.execution_time_ms,
        )

    async def log(
        self,
        result: ToolResult,
        arguments: dict[str, Any],
        request_id: Optional[str] = None,
        source: str = "jsonrpc"
    ) -> None:
        """
        Log a tool execution.

        Args:
            result: Tool execution result
            arguments: Arguments the tool was called with
            request_id: Caller's request id
            source: Entry point, "jsonrpc" or "rest"
        """
        if not self.enabled:
            return

        entry = self.create_entry(result, arguments, request_id=request_id, source=source)

        logger.info(
            "Tool executed",
            audit_id=entry.id,
            tool=entry.tool_name,
            request_id=entry.request_id,
            source=entry.source,
            status=entry.status.value,
            execution_time_ms=round(entry.execution_time_ms, 2)
        )

        async with self._lock:
            self._buffer.append(entry)

            if len(self._buffer) >= self.buffer_size:
                await self._flush()

    async def _flush(self) -> None:
        """Flush buffered entries to file."""
        if not self._buffer:
            return

        entries_to_write = self._buffer.copy()
        self._buffer.clear()

        try:
            async with aiofiles.open(self.log_path, "a") as f:
                for entry in entries_to_write:
                    await f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Failed to write audit log", error=str(e))
            # Keep entries for the next flush
            self._buffer.extend(entries_to_write)

    async def flush(self) -> None:
        """Public method to flush audit buffer."""
        async with self._lock:
            await self._flush()
