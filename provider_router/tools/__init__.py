from provider_router.tools.gateway import (
    BaseTool,
    CalculatorTool,
    CurrentTimeTool,
    ToolContext,
    ToolExecutor,
    ToolGateway,
    ToolResult,
)

__all__ = [
    "BaseTool",
    "CalculatorTool",
    "CurrentTimeTool",
    "ToolContext",
    "ToolExecutor",
    "ToolGateway",
    "ToolResult",
]
