"""Tests for the tool registry."""

import pytest
from pydantic import Field

from lumina.tools import registry as global_registry
from lumina.tools.base import ToolContext, ToolParams, ToolResult
from lumina.tools.registry import UNKNOWN_FUNCTION, ToolRegistry

# -- Fixtures ----------------------------------------------------------------


@pytest.fixture
def reg() -> ToolRegistry:
    """Fresh registry for each test."""
    return ToolRegistry()


# -- Decorator registration --------------------------------------------------


def test_register_via_decorator(reg: ToolRegistry) -> None:
    @reg.tool(name="ping", description="Ping", category="test")
    async def ping() -> ToolResult:
        return ToolResult(data={"pong": True})

    assert "ping" in reg.tool_names
    assert reg.get("ping") is not None
    assert reg.get("ping").category == "test"


def test_decorator_rejects_sync_function(reg: ToolRegistry) -> None:
    with pytest.raises(TypeError, match="must be an async function"):

        @reg.tool(name="bad", description="Bad", category="test")
        def bad() -> ToolResult:
            return ToolResult()


def test_decorator_rejects_duplicate_name(reg: ToolRegistry) -> None:
    @reg.tool(name="twice", description="First", category="test")
    async def first() -> ToolResult:
        return ToolResult()

    with pytest.raises(ValueError, match="already registered"):

        @reg.tool(name="twice", description="Second", category="test")
        async def second() -> ToolResult:
            return ToolResult()


def test_global_catalog_has_every_tool() -> None:
    assert set(global_registry.tool_names) == {
        "logTransaction",
        "scheduleMeeting",
        "addJournalEntry",
        "getDailyQuote",
        "searchWeb",
        "getUserFinances",
        "getUserSchedule",
        "getUserJournals",
    }


# -- Schema generation -------------------------------------------------------


def test_get_schemas_no_params(reg: ToolRegistry) -> None:
    @reg.tool(name="simple", description="Simple tool", category="test")
    async def simple() -> ToolResult:
        return ToolResult()

    schemas = reg.get_schemas()
    assert len(schemas) == 1
    assert schemas[0]["name"] == "simple"
    assert schemas[0]["description"] == "Simple tool"
    assert schemas[0]["input_schema"]["type"] == "object"
    assert schemas[0]["input_schema"]["properties"] == {}


def test_get_schemas_with_params(reg: ToolRegistry) -> None:
    class Params(ToolParams):
        query: str = Field(description="Search query")
        limit: int = Field(default=10, description="Max results")

    @reg.tool(
        name="search",
        description="Search things",
        category="test",
        params_model=Params,
    )
    async def search(query: str, limit: int = 10) -> ToolResult:
        return ToolResult()

    schemas = reg.get_schemas()
    props = schemas[0]["input_schema"]["properties"]
    assert "query" in props
    assert "limit" in props
    assert props["query"]["type"] == "string"
    assert props["limit"]["type"] == "integer"
    assert "query" in schemas[0]["input_schema"]["required"]


def test_log_transaction_schema_uses_wire_names() -> None:
    schema = global_registry.get("logTransaction").params_model.model_json_schema()
    assert set(schema["required"]) == {"type", "amount", "category", "description"}
    assert schema["properties"]["type"]["enum"] == ["income", "expense"]


# -- Execution ---------------------------------------------------------------


async def test_execute_tool(reg: ToolRegistry) -> None:
    @reg.tool(name="greet", description="Greet", category="test")
    async def greet() -> ToolResult:
        return ToolResult(data={"greeting": "hello"})

    result = await reg.execute("greet", {})
    assert result.success
    assert result.data["greeting"] == "hello"


async def test_execute_with_params(reg: ToolRegistry) -> None:
    class AddParams(ToolParams):
        a: int = Field(description="First number")
        b: int = Field(description="Second number")

    @reg.tool(name="add", description="Add", category="test", params_model=AddParams)
    async def add(a: int, b: int) -> ToolResult:
        return ToolResult(data={"sum": a + b})

    result = await reg.execute("add", {"a": 3, "b": 7})
    assert result.success
    assert result.data["sum"] == 10


async def test_execute_injects_context(reg: ToolRegistry, ctx: ToolContext) -> None:
    seen = []

    @reg.tool(name="peek", description="Peek", category="test")
    async def peek(ctx: ToolContext) -> ToolResult:
        seen.append(ctx)
        return ToolResult(data={})

    await reg.execute("peek", {}, ctx=ctx)
    assert seen == [ctx]


async def test_execute_without_ctx_param_gets_no_context(
    reg: ToolRegistry, ctx: ToolContext
) -> None:
    @reg.tool(name="plain", description="Plain", category="test")
    async def plain() -> ToolResult:
        return ToolResult(data={"ok": True})

    result = await reg.execute("plain", {}, ctx=ctx)
    assert result.success


async def test_execute_unknown_tool(reg: ToolRegistry) -> None:
    result = await reg.execute("nonexistent", {})
    assert not result.success
    assert result.error == UNKNOWN_FUNCTION
    assert result.action is None


async def test_execute_with_invalid_params(reg: ToolRegistry) -> None:
    class Params(ToolParams):
        count: int = Field(description="A number")

    @reg.tool(name="strict", description="Strict", category="test", params_model=Params)
    async def strict(count: int) -> ToolResult:
        return ToolResult(data={"count": count})

    result = await reg.execute("strict", {"count": "not_a_number"})
    assert not result.success
    assert "Invalid arguments for strict" in result.error
    assert "count" in result.error


async def test_execute_handler_exception(reg: ToolRegistry) -> None:
    @reg.tool(name="boom", description="Boom", category="test")
    async def boom() -> ToolResult:
        msg = "kaboom"
        raise RuntimeError(msg)

    result = await reg.execute("boom", {})
    assert not result.success
    assert result.error == "Error: kaboom"


# -- ToolResult serialization ------------------------------------------------


def test_tool_result_success_serialization() -> None:
    r = ToolResult(data={"key": "val", "symbol": "₹"})
    assert r.success
    assert '"key"' in r.to_content()
    assert "₹" in r.to_content()


def test_tool_result_error_serialization() -> None:
    r = ToolResult(error="something broke")
    assert not r.success
    assert '"error"' in r.to_content()
    assert "something broke" in r.to_content()
