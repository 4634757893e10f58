"""Core data models for the YouTube MCP Gateway.

This module defines the shared data structures: tool descriptors, the
JSON-RPC 2.0 envelope and response, normalized video records and the
framing-independent outcome of a tool execution.
"""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    model_validator,
)

from shared.schema import object_schema

JSONRPC_VERSION = "2.0"

# Methods in this namespace are one-way signals and never get a response.
NOTIFICATION_PREFIX = "notifications/"

RequestId = Union[StrictStr, StrictInt, StrictFloat, None]


class ToolDescriptor(BaseModel):
    """
    Published description of one tool.

    The set of descriptors is the catalog returned by discovery; it is
    fixed at startup.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1, description="Unique tool name")
    description: str = Field(..., description="Clear description for LLM usage")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: object_schema({}),
        alias="inputSchema",
        description="JSON Schema for argument validation"
    )

    def to_wire(self) -> dict[str, Any]:
        """Return the catalog entry as published to MCP clients."""
        return self.model_dump(by_alias=True)


class RpcMethod(str, Enum):
    """Closed set of methods the dispatcher understands."""
    INITIALIZE = "initialize"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, method: str) -> "RpcMethod":
        try:
            return cls(method)
        except ValueError:
            return cls.UNKNOWN


class RpcErrorCode(IntEnum):
    """JSON-RPC error codes emitted by the gateway."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    APPLICATION_ERROR = -32000


class RpcEnvelope(BaseModel):
    """
    An incoming JSON-RPC 2.0 message.

    ``id`` defaults to ``None`` both when it is absent and when it is an
    explicit ``null``; ``has_id`` tells the two apart.
    """
    jsonrpc: Literal["2.0"]
    method: StrictStr
    id: RequestId = None
    params: Optional[dict[str, Any]] = None

    @property
    def has_id(self) -> bool:
        return "id" in self.model_fields_set

    @property
    def is_notification(self) -> bool:
        return self.method.startswith(NOTIFICATION_PREFIX) or not self.has_id

    @property
    def rpc_method(self) -> RpcMethod:
        return RpcMethod.parse(self.method)


class RpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""
    code: int
    message: str
    data: Optional[Any] = None


class RpcResponse(BaseModel):
    """A JSON-RPC 2.0 response carrying exactly one of result or error."""
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId = None
    result: Optional[dict[str, Any]] = None
    error: Optional[RpcError] = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "RpcResponse":
        if (self.result is None) == (self.error is None):
            raise ValueError("Response must carry exactly one of result or error")
        return self

    @classmethod
    def success(cls, request_id: Any, result: dict[str, Any]) -> "RpcResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls,
        request_id: Any,
        code: RpcErrorCode,
        message: str,
        data: Any = None
    ) -> "RpcResponse":
        return cls(id=request_id, error=RpcError(code=int(code), message=message, data=data))

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the wire; ``id`` is always present, ``null`` if unknown."""
        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        else:
            payload["result"] = self.result
        return payload


class VideoRecord(BaseModel):
    """
    Normalized video returned by every backend.

    ``id`` is empty when the URL matches no known pattern; such records are
    still returned by title and tag queries.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    title: str = ""
    url: str = ""
    published_at: str = Field(default="", alias="publishedAt")
    tags: list[str] = Field(default_factory=list, description="Unique tokens, first-seen order")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ToolResultStatus(str, Enum):
    """Status of tool execution."""
    SUCCESS = "success"
    ERROR = "error"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    TIMEOUT = "timeout"


class ToolResult(BaseModel):
    """
    Result of a tool execution.

    Contains the output data, status, and any error information.
    """
    tool_name: str
    status: ToolResultStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    status_code: Optional[int] = Field(default=None, description="Upstream HTTP status, if any")
    execution_time_ms: float = 0

    @property
    def ok(self) -> bool:
        return self.status == ToolResultStatus.SUCCESS


class AuditEntry(BaseModel):
    """Audit log entry for one executed tool call."""
    id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    tool_name: str
    request_id: Optional[str] = None
    source: str = Field(default="jsonrpc", description="jsonrpc or rest")

    # Request details
    arguments: dict[str, Any] = Field(default_factory=dict)

    # Result information
    status: ToolResultStatus
    error: Optional[str] = None
    execution_time_ms: float = 0
