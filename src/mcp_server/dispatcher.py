"""JSON-RPC 2.0 dispatcher for the MCP protocol.

Turns decoded request bodies into JSON-RPC responses:
- Rejects malformed envelopes (-32600)
- Acknowledges notifications without a response
- Answers the initialize handshake, tools/list and tools/call
- Maps tool outcomes onto the JSON-RPC error taxonomy
"""

import json
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from shared.logging import get_logger
from shared.models import (
    RpcEnvelope,
    RpcErrorCode,
    RpcMethod,
    RpcResponse,
    ToolResult,
    ToolResultStatus,
)
from mcp_server.router import ToolRouter

logger = get_logger(__name__)

Handler = Callable[[RpcEnvelope], Awaitable[RpcResponse]]


class InvalidEnvelope(Exception):
    """The payload is not a well-formed JSON-RPC 2.0 envelope."""

    def __init__(self, request_id: Any = None) -> None:
        super().__init__("Invalid Request")
        self.request_id = request_id


def usable_id(value: Any) -> Any:
    """Return ``value`` if it can be echoed as a JSON-RPC id, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        return value
    return None


def parse_envelope(payload: Any) -> RpcEnvelope:
    """
    Validate a decoded JSON value as a JSON-RPC 2.0 envelope.

    Raises:
        InvalidEnvelope: Carrying the id to echo back, if one is usable
    """
    if not isinstance(payload, dict):
        raise InvalidEnvelope()
    try:
        return RpcEnvelope.model_validate(payload)
    except ValidationError:
        raise InvalidEnvelope(usable_id(payload.get("id")))


class ProtocolDispatcher:
    """
    MCP JSON-RPC dispatcher.

    Stateless: the handshake may be repeated or skipped, and every request
    is answered from the registry and router alone.
    """

    def __init__(
        self,
        router: ToolRouter,
        server_name: str = "youtube-mcp-gateway",
        server_version: str = "1.0.0",
        protocol_version: str = "2024-11-05"
    ) -> None:
        self.router = router
        self.server_name = server_name
        self.server_version = server_version
        self.protocol_version = protocol_version
        self._handlers: dict[RpcMethod, Handler] = {
            RpcMethod.INITIALIZE: self._initialize,
            RpcMethod.TOOLS_LIST: self._tools_list,
            RpcMethod.TOOLS_CALL: self._tools_call,
            RpcMethod.UNKNOWN: self._unknown_method,
        }

    async def handle(self, payload: Any) -> Union[dict[str, Any], list[dict[str, Any]], None]:
        """
        Handle one decoded request body.

        Args:
            payload: A single envelope or a batch (JSON array)

        Returns:
            The response object, a list of them for batches, or None when
            nothing needs to be sent back (notifications only)
        """
        if isinstance(payload, list):
            return await self._handle_batch(payload)

        response = await self.dispatch(payload)
        return response.to_wire() if response else None

    async def _handle_batch(
        self,
        payload: list[Any]
    ) -> Union[dict[str, Any], list[dict[str, Any]], None]:
        # An empty array is answered with a single error object, not an array
        if not payload:
            return RpcResponse.failure(None, RpcErrorCode.INVALID_REQUEST, "Invalid Request").to_wire()

        responses = []
        # Sequential, so responses keep the order of the requests
        for item in payload:
            response = await self.dispatch(item)
            if response is not None:
                responses.append(response.to_wire())
        return responses or None

    async def dispatch(self, payload: Any) -> Optional[RpcResponse]:
        """Handle a single envelope; None for notifications."""
        try:
            envelope = parse_envelope(payload)
        except InvalidEnvelope as e:
            logger.info("Invalid JSON-RPC envelope", request_id=e.request_id)
            return RpcResponse.failure(e.request_id, RpcErrorCode.INVALID_REQUEST, "Invalid Request")

        if envelope.is_notification:
            logger.debug("Notification received", method=envelope.method)
            return None

        handler = self._handlers[envelope.rpc_method]
        try:
            return await handler(envelope)
        except Exception as e:
            logger.error(
                "Request handling failed",
                method=envelope.method,
                request_id=envelope.id,
                error=str(e),
                exc_info=True
            )
            return RpcResponse.failure(envelope.id, RpcErrorCode.APPLICATION_ERROR, "Internal error")

    async def _initialize(self, envelope: RpcEnvelope) -> RpcResponse:
        return RpcResponse.success(envelope.id, {
            "protocolVersion": self.protocol_version,
            "serverInfo": {"name": self.server_name, "version": self.server_version},
            "capabilities": {"tools": {"listChanged": False}},
        })

    async def _tools_list(self, envelope: RpcEnvelope) -> RpcResponse:
        return RpcResponse.success(envelope.id, {"tools": self.router.registry.catalog()})

    async def _tools_call(self, envelope: RpcEnvelope) -> RpcResponse:
        params = envelope.params or {}
        name = params.get("name")
        if not isinstance(name, str) or not name:
            return RpcResponse.failure(
                envelope.id,
                RpcErrorCode.INVALID_REQUEST,
                "Invalid Request: tools/call requires params.name"
            )

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}

        result = await self.router.execute(
            name,
            arguments,
            request_id=None if envelope.id is None else str(envelope.id),
        )
        return self._tool_response(envelope.id, result)

    async def _unknown_method(self, envelope: RpcEnvelope) -> RpcResponse:
        return RpcResponse.failure(
            envelope.id,
            RpcErrorCode.METHOD_NOT_FOUND,
            f"Unknown method {envelope.method}"
        )

    def _tool_response(self, request_id: Any, result: ToolResult) -> RpcResponse:
        if result.status == ToolResultStatus.NOT_FOUND:
            return RpcResponse.failure(request_id, RpcErrorCode.METHOD_NOT_FOUND, result.error)

        if not result.ok:
            return RpcResponse.failure(
                request_id,
                RpcErrorCode.APPLICATION_ERROR,
                result.error or "Application error"
            )

        return RpcResponse.success(request_id, wrap_results(result.data))


def wrap_results(data: Any) -> dict[str, Any]:
    """
    Wrap backend results for ``tools/call``.

    The same shape is used for every tool: a text content block holding
    the JSON results, plus the results themselves as structured content.
    """
    results = data if isinstance(data, list) else [data]
    return {
        "content": [{"type": "text", "text": json.dumps(results, ensure_ascii=False)}],
        "structuredContent": {"results": results},
        "isError": False,
    }
