"""Tool gateway - executes tool calls requested by a routed model.

Each tool is a class with:
  - name: str - tool identifier (used in the function-calling schema)
  - description: str - description for the model
  - parameters_schema: dict - JSON Schema of the arguments
  - execute(params, context) -> ToolResult

Callers depend on the ToolExecutor protocol; ToolGateway is the production
implementation and tests inject fakes. Failures never raise out of
execute(): unknown tools, missing arguments and tool exceptions all come
back as ToolResult(success=False, error=...).
"""

from __future__ import annotations

import ast
import operator
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from provider_router.middleware.prometheus import record_tool_call

log = structlog.get_logger(__name__)

MAX_EXPONENT = 1000


@dataclass
class ToolContext:
    """Context passed to each tool execution."""
    session_id: str
    user_id: str | None = None


@dataclass
class ToolResult:
    """Result from a tool execution."""
    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "metadata": self.metadata,
        }


class ToolExecutor(Protocol):
    async def execute(
        self,
        tool_name: str,
        params: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult: ...


class BaseTool(ABC):
    """Abstract base class for all tools."""

    name: str
    description: str
    parameters_schema: dict[str, Any]

    @abstractmethod
    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        """Execute the tool with validated parameters."""

    def missing_params(self, params: dict[str, Any]) -> list[str]:
        required = self.parameters_schema.get("required", [])
        return [name for name in required if name not in params]


_BINARY_OPS: dict[type, Any] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: dict[type, Any] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}


def evaluate_expression(expression: str) -> float:
    """Evaluate arithmetic with a restricted AST walker - never eval().

    Raises:
        ValueError: On syntax errors or any non-arithmetic construct
    """
    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as exc:
        raise ValueError(f"Invalid expression: {exc.msg}") from exc

    def _eval(node: ast.AST) -> float:
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and type(node.value) in (int, float):
            return float(node.value)
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            left, right = _eval(node.left), _eval(node.right)
            if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
                raise ValueError(f"Exponent too large: {right:g}")
            result = _BINARY_OPS[type(node.op)](left, right)
            if isinstance(result, complex):
                raise ValueError("Result is not a real number")
            return result
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](_eval(node.operand))
        raise ValueError(f"Unsupported expression element: {type(node).__name__}")

    return _eval(tree)


class CalculatorTool(BaseTool):
    """Safe arithmetic evaluator."""

    name = "calculator"
    description = "Evaluate a mathematical expression and return the result."
    parameters_schema = {
        "type": "object",
        "properties": {
            "expression": {
                "type": "string",
                "description": "Mathematical expression to evaluate (e.g. '(5 + 3) * 2')",
            }
        },
        "required": ["expression"],
    }

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        expr = str(params["expression"])
        try:
            result = evaluate_expression(expr)
        except (ValueError, ZeroDivisionError, OverflowError) as exc:
            return ToolResult(
                success=False,
                error=f"Calculation error: {exc}",
                metadata={"expression": expr},
            )
        return ToolResult(success=True, data={"result": result, "expression": expr})


class CurrentTimeTool(BaseTool):
    """Current UTC time, for 'what time is it' style questions."""

    name = "current_time"
    description = "Return the current date and time in UTC (ISO 8601)."
    parameters_schema = {"type": "object", "properties": {}, "required": []}

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        now = datetime.now(UTC)
        return ToolResult(success=True, data={"utc": now.isoformat(), "unix": now.timestamp()})


DEFAULT_TOOLS: tuple[type[BaseTool], ...] = (CalculatorTool, CurrentTimeTool)


class ToolGateway:
    """Registry of tools; validates and executes tool calls."""

    def __init__(self, tools: Iterable[BaseTool] | None = None) -> None:
        instances = list(tools) if tools is not None else [cls() for cls in DEFAULT_TOOLS]
        self._tools: dict[str, BaseTool] = {tool.name: tool for tool in instances}

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._tools)

    def get_tool_schemas(self) -> list[dict[str, Any]]:
        """Function-calling schemas for every registered tool."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters_schema,
                },
            }
            for tool in self._tools.values()
        ]

    async def execute(
        self,
        tool_name: str,
        params: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        """Execute a named tool. Never raises."""
        tool = self._tools.get(tool_name)
        if tool is None:
            record_tool_call(tool_name, success=False)
            return ToolResult(success=False, error=f"Tool '{tool_name}' not found")

        missing = tool.missing_params(params)
        if missing:
            record_tool_call(tool_name, success=False)
            return ToolResult(
                success=False,
                error=f"Missing required parameters: {', '.join(missing)}",
            )

        log.info(
            "tool.executing",
            tool=tool_name,
            session_id=context.session_id,
            user_id=context.user_id,
        )

        try:
            result = await tool.execute(params, context)
        except Exception as exc:
            log.error("tool.execution_failed", tool=tool_name, error=str(exc))
            result = ToolResult(success=False, error=f"Tool execution error: {exc}")

        record_tool_call(tool_name, success=result.success)
        return result
