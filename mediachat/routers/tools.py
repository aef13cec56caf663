"""
Tool endpoints - direct discovery and invocation of provider tools.

Endpoints:
    GET  /mcp/tools       - List tools of every provider
    POST /mcp/tools/call  - Invoke one tool once (no retries)
"""

import time

import structlog
from fastapi import APIRouter, Depends

from ..core.auth import get_user_id
from ..core.config import Settings, get_settings
from ..core.exceptions import NotFoundError, ToolInvocationError, UnknownToolError
from ..domain.tool_selection import parse_tool_args
from ..mcp.protocol import ToolCallRequest, ToolCallResponse, ToolListResponse
from ..mcp.registry import ToolProviderRegistry

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/mcp/tools", response_model=ToolListResponse, tags=["tools"])
async def list_tools(settings: Settings = Depends(get_settings)) -> ToolListResponse:
    async with ToolProviderRegistry.from_settings(settings) as registry:
        return ToolListResponse(tools=registry.list_tools())


@router.post("/mcp/tools/call", response_model=ToolCallResponse, tags=["tools"])
async def call_tool(
    request: ToolCallRequest,
    user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
) -> ToolCallResponse:
    """Validate the arguments against the tool's schema and invoke it."""
    async with ToolProviderRegistry.from_settings(settings) as registry:
        try:
            backend = registry.backend_for_tool(request.name)
        except UnknownToolError as e:
            raise NotFoundError(e.message) from e

        # pydantic.ValidationError is rendered by the validation handler
        args = parse_tool_args(request.name, request.args)

        start = time.perf_counter()
        try:
            result = await registry.get(backend).call_tool(request.name, args)
        except ToolInvocationError as e:
            logger.warning("Direct tool call failed", tool=request.name, user_id=user_id, error=e.message)
            return ToolCallResponse(
                success=False,
                tool=request.name,
                error=e.message,
                duration_ms=(time.perf_counter() - start) * 1000,
            )

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info("Direct tool call succeeded", tool=request.name, user_id=user_id, duration_ms=round(duration_ms, 1))
        return ToolCallResponse(success=True, tool=request.name, result=result, duration_ms=duration_ms)
