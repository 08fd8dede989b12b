"""Insight generators — short model-written commentary on the user's records."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from lumina.llm.transport import ErrorKind, TransportError

if TYPE_CHECKING:
    from collections.abc import Callable

    from lumina.config import Settings
    from lumina.llm.content import ContentService
    from lumina.llm.governor import RequestGovernor
    from lumina.llm.transport import Transport
    from lumina.store.models import JournalEntry, ScheduleItem, Transaction
    from lumina.store.records import RecordStore

logger = logging.getLogger(__name__)

FINANCE_FALLBACK = "Keep tracking your expenses to get better insights!"
MOOD_FALLBACK = "Keep journaling to track your emotional well-being!"
SCHEDULE_FALLBACK = "Stay organized with your schedule!"

FINANCE_PROMPT = """\
Analyze this financial data and provide insights:

Total Income: {currency}{income:.2f}
Total Expense: {currency}{expense:.2f}
Balance: {currency}{balance:.2f}
Category Breakdown: {breakdown}

Provide 2-3 actionable financial insights for an Indian user. Be concise and practical."""

MOOD_PROMPT = """\
Analyze this mood tracking data and provide wellness insights:

Mood Distribution: {distribution}
Recent Entries:
{recent}

Provide 2-3 supportive wellness insights for an Indian user. Be empathetic and encouraging."""

SCHEDULE_PROMPT = """\
Provide schedule management insights:

Upcoming Events: {upcoming}
This Week: {this_week} events
Events: {titles}

Provide 2-3 brief scheduling tips for better time management. Be practical and actionable."""


@dataclass
class InsightReport:
    financial_health: str
    mood_trends: str
    schedule_tips: str
    daily_quote: str


class InsightGenerator:
    """Builds the insights page: three record summaries plus the daily quote.

    Each generator summarizes records locally, asks the model for a few
    sentences of commentary through the governor queue, and falls back to
    a fixed encouragement when the model cannot be reached.
    """

    def __init__(
        self,
        *,
        transport: Transport,
        governor: RequestGovernor,
        store: RecordStore,
        content: ContentService,
        settings: Settings,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._transport = transport
        self._governor = governor
        self._store = store
        self._content = content
        self._settings = settings
        self._now = now or (lambda: datetime.now(UTC))

    async def _ask(self, prompt: str, fallback: str) -> str:
        try:
            text = await self._governor.submit(lambda: self._transport.complete(prompt))
        except TransportError as exc:
            logger.warning("Insight generation failed (%s): %s", exc.kind, exc)
            if exc.kind is ErrorKind.QUOTA:
                self._governor.start_cooldown(self._settings.quota_cooldown_seconds)
            return fallback
        return text.strip() or fallback

    async def financial_health(self, transactions: list[Transaction] | None = None) -> str:
        if transactions is None:
            transactions = await self._store.transactions()

        income = sum(t.amount for t in transactions if t.kind == "income")
        expense = sum(t.amount for t in transactions if t.kind == "expense")
        breakdown: Counter[str] = Counter()
        for t in transactions:
            if t.kind == "expense":
                breakdown[t.category] += t.amount

        prompt = FINANCE_PROMPT.format(
            currency=self._settings.currency_symbol,
            income=income,
            expense=expense,
            balance=income - expense,
            breakdown=json.dumps(dict(breakdown), ensure_ascii=False),
        )
        return await self._ask(prompt, FINANCE_FALLBACK)

    async def mood_trends(self, entries: list[JournalEntry] | None = None) -> str:
        if entries is None:
            entries = await self._store.journal_entries()

        distribution = dict(Counter(e.mood for e in entries))
        recent = "\n".join(f"{e.mood}: {e.content[:50]}" for e in entries[:5])
        prompt = MOOD_PROMPT.format(distribution=json.dumps(distribution), recent=recent)
        return await self._ask(prompt, MOOD_FALLBACK)

    async def schedule_tips(self, items: list[ScheduleItem] | None = None) -> str:
        if items is None:
            items = await self._store.schedule_items()

        tz = ZoneInfo(self._settings.timezone)
        now = self._now().astimezone(tz)
        week_ahead = now + timedelta(days=7)
        upcoming = [i for i in items if i.starts_at(tz) > now]
        this_week = [i for i in upcoming if i.starts_at(tz) < week_ahead]

        prompt = SCHEDULE_PROMPT.format(
            upcoming=len(upcoming),
            this_week=len(this_week),
            titles=", ".join(i.title for i in items[:5]),
        )
        return await self._ask(prompt, SCHEDULE_FALLBACK)

    async def daily_quote(self) -> str:
        return await self._content.daily_quote()

    async def generate_all(self) -> InsightReport:
        """All four insights, requested concurrently (the governor still spaces them)."""
        transactions, entries, items = await asyncio.gather(
            self._store.transactions(),
            self._store.journal_entries(),
            self._store.schedule_items(),
        )
        finance, mood, schedule, quote = await asyncio.gather(
            self.financial_health(transactions),
            self.mood_trends(entries),
            self.schedule_tips(items),
            self.daily_quote(),
        )
        return InsightReport(
            financial_health=finance,
            mood_trends=mood,
            schedule_tips=schedule,
            daily_quote=quote,
        )
