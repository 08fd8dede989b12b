"""Lookup tools — daily quote and web search, both served through the content cache."""

from pydantic import Field

from lumina.tools.base import ToolContext, ToolParams, ToolResult
from lumina.tools.registry import registry


class SearchWebParams(ToolParams):
    query: str = Field(min_length=1, description="The search query to look up.")


@registry.tool(
    name="getDailyQuote",
    description="Fetch a random good message or quote for the user.",
    category="lookup",
)
async def get_daily_quote(ctx: ToolContext) -> ToolResult:
    quote = await ctx.content.daily_quote()
    return ToolResult(data={"result": quote})


@registry.tool(
    name="searchWeb",
    description=(
        "Search the internet for real-time information, news, stock prices, or current "
        "events. Use this when user asks for information you might not know."
    ),
    category="lookup",
    params_model=SearchWebParams,
)
async def search_web(query: str, ctx: ToolContext) -> ToolResult:
    answer = await ctx.content.search(query)
    return ToolResult(data={"result": answer, "query": query})
