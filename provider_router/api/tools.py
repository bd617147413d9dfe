"""Tool execution endpoints.

GET  /api/v1/tools          - Function-calling schemas of the registered tools
POST /api/v1/tools/execute  - Execute a batch of tool calls in order

A failing call never fails the batch; its result carries the error.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from provider_router.api.deps import get_services
from provider_router.api.schemas import ToolCallResult, ToolExecuteRequest, ToolExecuteResponse
from provider_router.services import RoutingServices
from provider_router.tools.gateway import ToolContext, ToolGateway

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("", summary="List available tools")
async def list_tools(
    services: RoutingServices = Depends(get_services),
) -> dict[str, Any]:
    tools = services.tools
    schemas = tools.get_tool_schemas() if isinstance(tools, ToolGateway) else []
    return {"tools": schemas}


@router.post(
    "/execute",
    response_model=ToolExecuteResponse,
    summary="Execute tool calls",
)
async def execute_tools(
    body: ToolExecuteRequest,
    services: RoutingServices = Depends(get_services),
) -> ToolExecuteResponse:
    context = ToolContext(session_id=body.session_id, user_id=body.user_id)

    results = []
    for call in body.tool_calls:
        result = await services.tools.execute(call.tool_name, call.arguments, context)
        results.append(
            ToolCallResult(
                id=call.id,
                tool_name=call.tool_name,
                success=result.success,
                result=result.data,
                error=result.error,
            )
        )
    return ToolExecuteResponse(results=results)
