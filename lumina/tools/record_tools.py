"""Record tools — log transactions, schedule meetings, add journal entries."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Literal

from pydantic import Field

from lumina.store.models import JournalEntry, ScheduleItem, Transaction
from lumina.tools.base import ActionKind, AgenticAction, ToolContext, ToolParams, ToolResult
from lumina.tools.registry import registry

logger = logging.getLogger(__name__)

_CATEGORY = "records"


def format_amount(amount: float) -> str:
    return f"{amount:.0f}" if amount == int(amount) else f"{amount:.2f}"


# -- logTransaction ------------------------------------------------------------


class LogTransactionParams(ToolParams):
    kind: Literal["income", "expense"] = Field(
        alias="type", description="Type of transaction"
    )
    amount: float = Field(gt=0, description="Amount of money in INR")
    category: str = Field(description="Category (e.g., Groceries, UPI, Rent, Food, Transport)")
    description: str = Field(description="Short description of the transaction")


@registry.tool(
    name="logTransaction",
    description="Log a financial transaction (income or expense). Default currency is INR (₹).",
    category=_CATEGORY,
    params_model=LogTransactionParams,
)
async def log_transaction(
    kind: str,
    amount: float,
    category: str,
    description: str,
    ctx: ToolContext,
) -> ToolResult:
    record = Transaction(
        amount=amount,
        kind=kind,
        category=category,
        description=description,
        occurred_at=ctx.now(),
    )
    await ctx.store.create(record)
    symbol = ctx.settings.currency_symbol
    return ToolResult(
        data={
            "result": f"Transaction logged: {symbol}{format_amount(amount)} for {category}",
            "id": record.id,
        },
        action=AgenticAction(
            kind=ActionKind.TRANSACTION,
            payload={
                "type": kind,
                "amount": amount,
                "category": category,
                "description": description,
            },
        ),
    )


# -- scheduleMeeting -----------------------------------------------------------


class ScheduleMeetingParams(ToolParams):
    title: str = Field(min_length=1, description="Title of the meeting")
    date: dt.date = Field(description="Date in YYYY-MM-DD format")
    time: str = Field(description="Time in HH:MM format (24h)")
    duration: int = Field(gt=0, description="Duration in minutes")
    description: str = Field(default="", description="Optional notes about the meeting")
    reminder_minutes: int | None = Field(
        default=None,
        ge=0,
        description="Minutes before the start to remind the user. Defaults to 15.",
    )


@registry.tool(
    name="scheduleMeeting",
    description="Schedule a new meeting or appointment.",
    category=_CATEGORY,
    params_model=ScheduleMeetingParams,
)
async def schedule_meeting(
    title: str,
    date: dt.date,
    time: str,
    duration: int,
    ctx: ToolContext,
    description: str = "",
    reminder_minutes: int | None = None,
) -> ToolResult:
    if reminder_minutes is None:
        reminder_minutes = ctx.settings.default_reminder_minutes

    item = ScheduleItem(
        title=title,
        date=date,
        time=time,
        description=description,
        reminder_minutes=reminder_minutes,
    )
    await ctx.store.create(item)
    return ToolResult(
        data={
            "result": f"Meeting scheduled: {title} on {item.date.isoformat()} at {item.time}",
            "id": item.id,
            "duration_minutes": duration,
            "reminder_minutes": reminder_minutes,
        },
        action=AgenticAction(
            kind=ActionKind.SCHEDULE,
            payload={
                "title": title,
                "date": item.date.isoformat(),
                "time": item.time,
                "duration": duration,
                "description": description,
                "reminder_minutes": reminder_minutes,
            },
        ),
    )


# -- addJournalEntry -----------------------------------------------------------


class AddJournalEntryParams(ToolParams):
    content: str = Field(min_length=1, description="The content of the journal entry")
    mood: Literal["happy", "neutral", "sad", "energetic", "calm"] = Field(
        description="Current mood associated with the entry"
    )


@registry.tool(
    name="addJournalEntry",
    description="Save a personal journal entry or diary log.",
    category=_CATEGORY,
    params_model=AddJournalEntryParams,
)
async def add_journal_entry(content: str, mood: str, ctx: ToolContext) -> ToolResult:
    entry = JournalEntry(content=content, mood=mood, occurred_at=ctx.now())
    await ctx.store.create(entry)
    return ToolResult(
        data={"result": f"Journal entry saved with {mood} mood", "id": entry.id},
        action=AgenticAction(
            kind=ActionKind.JOURNAL,
            payload={"content": content, "mood": mood},
        ),
    )
