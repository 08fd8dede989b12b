"""Summary tools — period-scoped digests of finances, schedule and journal."""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Literal
from zoneinfo import ZoneInfo

from pydantic import Field

from lumina.periods import in_window, period_window
from lumina.tools.base import ToolContext, ToolParams, ToolResult
from lumina.tools.registry import registry

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)

_CATEGORY = "summaries"

PastPeriod = Literal["today", "this_week", "last_week", "this_month", "last_month", "all"]
FuturePeriod = Literal["today", "tomorrow", "this_week", "next_week", "this_month", "all"]

SAMPLE_SIZE = 3
SCHEDULE_SAMPLE_SIZE = 5
TOP_CATEGORIES = 5
CONTENT_PREVIEW_CHARS = 120


def _local_now(ctx: ToolContext) -> datetime:
    return ctx.now().astimezone(ZoneInfo(ctx.settings.timezone))


# -- getUserFinances -----------------------------------------------------------


class FinancesParams(ToolParams):
    period: PastPeriod = Field(description="Time period to fetch financial data for")


@registry.tool(
    name="getUserFinances",
    description=(
        "Get user's financial data including income, expenses, and transactions "
        "for a specific time period."
    ),
    category=_CATEGORY,
    params_model=FinancesParams,
)
async def get_user_finances(period: str, ctx: ToolContext) -> ToolResult:
    now = _local_now(ctx)
    window = period_window(period, now)
    transactions = [t for t in await ctx.store.transactions() if in_window(t.occurred_at, window)]

    income = sum(t.amount for t in transactions if t.kind == "income")
    expense = sum(t.amount for t in transactions if t.kind == "expense")

    by_category: Counter[str] = Counter()
    for t in transactions:
        if t.kind == "expense":
            by_category[t.category] += t.amount

    return ToolResult(
        data={
            "period": period,
            "total_income": round(income, 2),
            "total_expense": round(expense, 2),
            "balance": round(income - expense, 2),
            "transaction_count": len(transactions),
            "top_expense_categories": {
                name: round(total, 2) for name, total in by_category.most_common(TOP_CATEGORIES)
            },
            "recent": [
                {
                    "date": t.occurred_at.astimezone(now.tzinfo).date().isoformat(),
                    "type": t.kind,
                    "amount": t.amount,
                    "category": t.category,
                    "description": t.description,
                }
                for t in transactions[:SAMPLE_SIZE]
            ],
        }
    )


# -- getUserSchedule -----------------------------------------------------------


class ScheduleParams(ToolParams):
    period: FuturePeriod = Field(description="Time period to fetch schedule for")


@registry.tool(
    name="getUserSchedule",
    description=(
        "Get user's schedule and meetings for a specific time period. "
        "Use this to check availability or discuss schedule."
    ),
    category=_CATEGORY,
    params_model=ScheduleParams,
)
async def get_user_schedule(period: str, ctx: ToolContext) -> ToolResult:
    now = _local_now(ctx)
    window = period_window(period, now)
    items = [
        item for item in await ctx.store.schedule_items()
        if in_window(item.starts_at(now.tzinfo), window)
    ]
    upcoming = [item for item in items if item.starts_at(now.tzinfo) > now]

    return ToolResult(
        data={
            "period": period,
            "total": len(items),
            "upcoming_count": len(upcoming),
            "items": [
                {
                    "title": item.title,
                    "date": item.date.isoformat(),
                    "time": item.time,
                    "description": item.description,
                }
                for item in items[:SCHEDULE_SAMPLE_SIZE]
            ],
        }
    )


# -- getUserJournals -----------------------------------------------------------


class JournalsParams(ToolParams):
    period: PastPeriod = Field(description="Time period to fetch journal entries for")


@registry.tool(
    name="getUserJournals",
    description=(
        "Get user's journal entries and mood data for a specific time period. "
        "Use this to understand how the user has been feeling."
    ),
    category=_CATEGORY,
    params_model=JournalsParams,
)
async def get_user_journals(period: str, ctx: ToolContext) -> ToolResult:
    now = _local_now(ctx)
    window = period_window(period, now)
    entries = [e for e in await ctx.store.journal_entries() if in_window(e.occurred_at, window)]

    return ToolResult(
        data={
            "period": period,
            "total_entries": len(entries),
            "mood_counts": dict(Counter(e.mood for e in entries)),
            "recent_entries": [
                {
                    "date": e.occurred_at.astimezone(now.tzinfo).date().isoformat(),
                    "mood": e.mood,
                    "content": e.content[:CONTENT_PREVIEW_CHARS],
                }
                for e in entries[:SAMPLE_SIZE]
            ],
        }
    )
