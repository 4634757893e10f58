"""Shared configuration, logging and data models for the gateway."""

from shared.models import (
    AuditEntry,
    RpcEnvelope,
    RpcErrorCode,
    RpcMethod,
    RpcResponse,
    ToolDescriptor,
    ToolResult,
    ToolResultStatus,
    VideoRecord,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "AuditEntry",
    "RpcEnvelope",
    "RpcErrorCode",
    "RpcMethod",
    "RpcResponse",
    "ToolDescriptor",
    "ToolResult",
    "ToolResultStatus",
    "VideoRecord",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
