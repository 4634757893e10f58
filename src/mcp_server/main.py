"""MCP Server - FastAPI Application.

Exposes the registered video tools over JSON-RPC 2.0 (MCP), the plain
JSON manifest aliases, a health probe and a few authenticated
convenience routes that bypass the JSON-RPC framing.
"""

import json
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from shared.config import Settings, get_settings
from shared.logging import bind_request_context, clear_request_context, get_logger, setup_logging
from shared.models import RpcErrorCode, RpcResponse, ToolResultStatus
from backends import load_all_backends
from mcp_server.audit import AuditLogger
from mcp_server.auth import AuthGate, auth_middleware
from mcp_server.dispatcher import ProtocolDispatcher, usable_id
from mcp_server.keepalive import KeepaliveTask
from mcp_server.registry import ToolRegistry
from mcp_server.router import ToolRouter

logger = get_logger(__name__)

MANIFEST_PATHS = [
    "/mcp",
    "/mcp/",
    "/mcp/manifest",
    "/mcp/manifest.json",
    "/manifest",
    "/manifest.json",
]


# Request/Response Models
class ToolCallRequest(BaseModel):
    """Request to execute a tool."""
    tool_name: str = Field(..., description="Registered tool name")
    arguments: dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = Field(default=None)


class ToolCallResponse(BaseModel):
    """Response from tool execution."""
    tool_name: str
    status: str
    data: Optional[Any] = None
    error: Optional[str] = None
    execution_time_ms: float = 0


class ToolListResponse(BaseModel):
    """List of available tools."""
    tools: list[dict[str, Any]]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    tool_count: int


class YouTubeSearchRequest(BaseModel):
    query: Optional[str] = None
    maxResults: int = 10


class YouTubeGetRequest(BaseModel):
    videoId: Optional[str] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings: Settings = app.state.settings or get_settings()
    app.state.settings = settings
    setup_logging(settings.log_level, json_output=settings.environment == "production")

    logger.info("Starting MCP Server", environment=settings.environment)

    registry: Optional[ToolRegistry] = app.state.registry
    if registry is None:
        registry = ToolRegistry()
        load_all_backends(registry, settings)
        app.state.registry = registry

    audit_logger = AuditLogger(
        log_path=settings.server.audit_log_path,
        enabled=settings.server.enable_audit
    )
    tool_router = ToolRouter(
        registry=registry,
        audit_logger=audit_logger,
        timeout_seconds=settings.server.tool_timeout_seconds
    )
    app.state.tool_router = tool_router
    app.state.dispatcher = ProtocolDispatcher(
        tool_router,
        server_name=settings.server.name,
        server_version=settings.server.version,
        protocol_version=settings.server.protocol_version,
    )
    app.state.auth_gate = AuthGate.from_settings(settings.server)

    keepalive = KeepaliveTask.from_settings(settings.keepalive)
    if keepalive:
        keepalive.start()

    logger.info(
        "MCP Server started",
        tools=[descriptor.name for descriptor in registry.list_tools()]
    )

    yield

    logger.info("Shutting down MCP Server")
    if keepalive:
        await keepalive.stop()
    await audit_logger.flush()


async def request_context_middleware(request: Request, call_next):
    """Bind request identity to every log line emitted for this request."""
    clear_request_context()
    bind_request_context(
        request_id=request.headers.get("x-request-id") or uuid.uuid4().hex[:12],
        method=request.method,
        path=request.url.path,
    )
    try:
        return await call_next(request)
    finally:
        clear_request_context()


routes = APIRouter()


def _manifest(request: Request) -> dict[str, Any]:
    settings: Settings = request.app.state.settings
    return {
        "name": settings.server.name,
        "version": settings.server.version,
        "tools": request.app.state.registry.catalog(),
    }


async def _json_body(request: Request) -> Any:
    return json.loads(await request.body())


@routes.post("/mcp", tags=["MCP"])
@routes.post("/mcp/", include_in_schema=False)
async def rpc_endpoint(request: Request) -> Response:
    """
    JSON-RPC 2.0 endpoint.

    Notifications are acknowledged with 202 and no body.
    """
    try:
        payload = await _json_body(request)
    except ValueError:
        error = RpcResponse.failure(None, RpcErrorCode.PARSE_ERROR, "Parse error")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error.to_wire())

    dispatcher: ProtocolDispatcher = request.app.state.dispatcher
    body = await dispatcher.handle(payload)

    if body is None:
        return Response(status_code=status.HTTP_202_ACCEPTED)

    status_code = status.HTTP_200_OK
    if isinstance(body, dict) and body.get("error", {}).get("code") == RpcErrorCode.INVALID_REQUEST:
        status_code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=status_code, content=body)


@routes.post("/mcp/manifest", tags=["Discovery"])
@routes.post("/mcp/manifest.json", include_in_schema=False)
async def legacy_manifest(request: Request) -> dict[str, Any]:
    """Manifest wrapped in a JSON-RPC result, for older clients."""
    try:
        payload = await _json_body(request)
    except ValueError:
        payload = None
    request_id = usable_id(payload.get("id")) if isinstance(payload, dict) else None
    return {"jsonrpc": "2.0", "id": request_id, "result": {"manifest": _manifest(request)}}


async def get_manifest(request: Request) -> dict[str, Any]:
    """Static tool catalog as plain JSON."""
    return _manifest(request)


for _path in MANIFEST_PATHS:
    routes.add_api_route(
        _path,
        get_manifest,
        methods=["GET"],
        tags=["Discovery"],
        include_in_schema=_path == "/manifest.json",
    )


@routes.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(request: Request):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=request.app.state.settings.server.version,
        tool_count=len(request.app.state.registry),
    )


@routes.get("/tools", response_model=ToolListResponse, tags=["Tools"])
async def list_tools(request: Request):
    """List all available tools in registration order."""
    tools = request.app.state.registry.catalog()
    return ToolListResponse(tools=tools, count=len(tools))


@routes.get("/tools/{tool_name}", tags=["Tools"])
async def get_tool(tool_name: str, request: Request):
    """Get details for a specific tool."""
    descriptor = request.app.state.registry.get(tool_name)

    if not descriptor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tool '{tool_name}' not found"
        )

    return descriptor.to_wire()


@routes.post("/execute", response_model=ToolCallResponse, tags=["Execution"])
async def execute_tool(call: ToolCallRequest, request: Request):
    """Execute a tool directly, without JSON-RPC framing."""
    tool_router: ToolRouter = request.app.state.tool_router
    result = await tool_router.execute(
        call.tool_name,
        call.arguments,
        request_id=call.request_id,
        source="rest"
    )

    return ToolCallResponse(
        tool_name=result.tool_name,
        status=result.status.value,
        data=result.data,
        error=result.error,
        execution_time_ms=result.execution_time_ms
    )


async def _run_convenience(
    request: Request,
    tool_name: str,
    arguments: dict[str, Any],
    failure: str
) -> Any:
    tool_router: ToolRouter = request.app.state.tool_router
    result = await tool_router.execute(tool_name, arguments, source="rest")
    if result.ok:
        return result.data

    status_code = (
        status.HTTP_400_BAD_REQUEST
        if result.status == ToolResultStatus.VALIDATION_ERROR
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return JSONResponse(status_code=status_code, content={"error": failure, "details": result.error})


@routes.post("/youtube/search", tags=["Convenience"])
async def youtube_search(body: YouTubeSearchRequest, request: Request):
    """Search YouTube; returns the normalized result list."""
    arguments: dict[str, Any] = {"limit": body.maxResults}
    if body.query is not None:
        arguments["query"] = body.query
    return await _run_convenience(request, "youtube_search", arguments, "YouTube search failed")


@routes.post("/youtube/get", tags=["Convenience"])
async def youtube_get(body: YouTubeGetRequest, request: Request):
    """Look up one video; returns the record, or {} when it does not exist."""
    arguments = {"videoId": body.videoId} if body.videoId is not None else {}
    data = await _run_convenience(request, "youtube_get_video", arguments, "YouTube video lookup failed")
    if isinstance(data, list):
        return data[0] if data else {}
    return data


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ToolRegistry] = None
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use; loaded at startup when omitted
        registry: Pre-built registry; built from settings when omitted
    """
    app = FastAPI(
        title="YouTube MCP Gateway",
        description="MCP tool server for YouTube and video dataset search",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.registry = registry

    # Last added runs first: CORS, then request context, then auth
    app.middleware("http")(auth_middleware)
    app.middleware("http")(request_context_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes)
    return app


app = create_app()


def main():
    """Run the MCP Server."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "mcp_server.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.environment == "development"
    )


if __name__ == "__main__":
    main()
