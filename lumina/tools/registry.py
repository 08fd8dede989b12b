"""Tool registry — central catalog for all tools."""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from lumina.tools.base import ToolParams, ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from lumina.tools.base import ToolContext

logger = logging.getLogger(__name__)

UNKNOWN_FUNCTION = "Unknown function"


@dataclass
class ToolDef:
    """Internal representation of a registered tool."""

    name: str
    description: str
    category: str
    handler: Callable[..., Awaitable[ToolResult]]
    params_model: type[ToolParams] | None = None


class ToolRegistry:
    """Central registry for all tools.

    Tools register through the decorator::

        @registry.tool(
            name="logTransaction",
            description="Log a transaction",
            category="records",
            params_model=LogTransactionParams,
        )
        async def log_transaction(..., ctx: ToolContext) -> ToolResult:
            ...

    Handlers that declare a ``ctx`` parameter receive the per-call
    ``ToolContext``.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDef] = {}

    def tool(
        self,
        *,
        name: str,
        description: str,
        category: str,
        params_model: type[ToolParams] | None = None,
    ) -> Callable:
        """Decorator to register an async function as a tool."""

        def decorator(fn: Callable[..., Awaitable[ToolResult]]) -> Callable:
            if not inspect.iscoroutinefunction(fn):
                msg = f"Tool handler '{name}' must be an async function"
                raise TypeError(msg)
            if name in self._tools:
                msg = f"Tool '{name}' is already registered"
                raise ValueError(msg)

            self._tools[name] = ToolDef(
                name=name,
                description=description,
                category=category,
                handler=fn,
                params_model=params_model,
            )
            return fn

        return decorator

    def get(self, name: str) -> ToolDef | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    @property
    def tool_names(self) -> list[str]:
        """All registered tool names."""
        return list(self._tools.keys())

    def get_schemas(self) -> list[dict[str, Any]]:
        """Generate Claude-compatible tool schemas for all registered tools."""
        return [self._tool_schema(t) for t in self._tools.values()]

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        ctx: ToolContext | None = None,
    ) -> ToolResult:
        """Execute a tool by name with the given arguments.

        Never raises: unknown names, invalid arguments and handler failures
        all come back as error results so the model can carry on.
        """
        tool_def = self._tools.get(name)
        if tool_def is None:
            logger.warning("Model requested unknown tool '%s'", name)
            return ToolResult(error=UNKNOWN_FUNCTION)

        logger.info("Tool '%s' called with %s", name, arguments)
        t0 = time.monotonic()

        try:
            if tool_def.params_model is not None:
                params = tool_def.params_model(**(arguments or {}))
                kwargs = params.model_dump()
            else:
                kwargs = dict(arguments or {})
        except ValidationError as exc:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
            logger.warning("Tool '%s' got invalid arguments: %s", name, fields)
            return ToolResult(error=f"Invalid arguments for {name}: {fields}")

        if ctx is not None and _accepts_param(tool_def.handler, "ctx"):
            kwargs["ctx"] = ctx

        try:
            result = await tool_def.handler(**kwargs)
        except Exception as exc:
            elapsed = time.monotonic() - t0
            logger.exception("Tool '%s' failed in %.2fs", name, elapsed)
            return ToolResult(error=f"Error: {exc}")

        elapsed = time.monotonic() - t0
        if result.success:
            logger.info("Tool '%s' succeeded in %.2fs", name, elapsed)
        else:
            logger.warning("Tool '%s' returned error in %.2fs: %s", name, elapsed, result.error)
        return result

    @staticmethod
    def _tool_schema(tool_def: ToolDef) -> dict[str, Any]:
        """Build a single Claude tool schema dict."""
        if tool_def.params_model is not None:
            input_schema = tool_def.params_model.model_json_schema()
        else:
            input_schema = {"type": "object", "properties": {}}

        return {
            "name": tool_def.name,
            "description": tool_def.description,
            "input_schema": input_schema,
        }


def _accepts_param(fn: Callable[..., Any], param_name: str) -> bool:
    """Check whether a callable accepts a given parameter name."""
    return param_name in inspect.signature(fn).parameters


# Global catalog; tool modules register into this at import time.
registry = ToolRegistry()
