"""Orchestrator — the agentic tool-calling loop behind every chat message."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from lumina.llm.prompt import Persona, build_system_instruction
from lumina.llm.transport import ErrorKind, ToolOutcome, TransportError
from lumina.store.models import ChatMessage
from lumina.tools.base import ToolContext

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from lumina.config import Settings
    from lumina.llm.content import ContentService
    from lumina.llm.governor import RequestGovernor
    from lumina.llm.transport import ModelResponse, Transport
    from lumina.store.records import RecordStore
    from lumina.tools.base import AgenticAction
    from lumina.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

QUOTA_MESSAGE = (
    "⏳ I've hit my API quota. Please wait about a minute before trying again. "
    "This helps me manage my usage limits."
)
AUTH_MESSAGE = (
    "🔑 There's an issue with my API key. Please check that ANTHROPIC_API_KEY "
    "is set correctly in your environment or .env file."
)
ERROR_MESSAGE = "I apologize, but I encountered an error: {detail}. Please try again."
ERROR_DETAIL_CHARS = 100


@dataclass
class ConversationTurn:
    """A prior exchange turn sent to the model as context."""

    role: str  # "user" or "model"
    text: str


@dataclass
class AgentReply:
    """Final text for the user plus every record mutation made on their behalf."""

    text: str
    actions: list[AgenticAction] = field(default_factory=list)


def normalize_history(turns: Iterable[ConversationTurn]) -> list[ConversationTurn]:
    """Repair a history so it starts with a user turn and strictly alternates.

    A turn is kept only when its role is the one expected next; anything
    else (a leading model turn, a repeated role, an unknown role) is dropped.
    """
    kept: list[ConversationTurn] = []
    for turn in turns:
        expected = "user" if not kept or kept[-1].role == "model" else "model"
        if turn.role == expected:
            kept.append(turn)
    return kept


def fallback_reply(exc: TransportError) -> str:
    """User-facing text for a failed model call."""
    if exc.kind is ErrorKind.QUOTA:
        return QUOTA_MESSAGE
    if exc.kind is ErrorKind.AUTH:
        return AUTH_MESSAGE
    return ERROR_MESSAGE.format(detail=str(exc)[:ERROR_DETAIL_CHARS])


class Orchestrator:
    """Drives one user message through the model and the tool catalog.

    Args:
        transport: Remote model transport.
        governor: Shared request governor (queue, spacing, cooldown, caches).
        store: Record store for tool handlers and chat persistence.
        registry: Tool catalog offered to the model.
        content: Cached quote/search lookups for the lookup tools.
        settings: Application settings.
        now: Clock returning an aware datetime (injectable for tests).
    """

    def __init__(
        self,
        *,
        transport: Transport,
        governor: RequestGovernor,
        store: RecordStore,
        registry: ToolRegistry,
        content: ContentService,
        settings: Settings,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._transport = transport
        self._governor = governor
        self._store = store
        self._registry = registry
        self._settings = settings
        self._now = now or (lambda: datetime.now(UTC))
        self._tool_context = ToolContext(
            store=store, content=content, settings=settings, now=self._now
        )

    async def load_history(self) -> list[ConversationTurn]:
        """Rebuild context turns from the most recent stored chat messages."""
        messages = await self._store.recent_chat(self._settings.conversation_window_size)
        return [ConversationTurn(role=m.role, text=m.text) for m in messages]

    async def send_message(
        self,
        utterance: str,
        persona: Persona | str = Persona.GENERAL,
        history: Iterable[ConversationTurn] | None = None,
    ) -> AgentReply:
        """Answer *utterance*, running any tool calls the model asks for.

        Model transport failures never escape: they become an apologetic
        reply (and a quota failure starts the governor cooldown). Storage
        failures propagate. On success the utterance and the reply are
        stored as chat messages.
        """
        persona = Persona.parse(persona)
        if history is None:
            history = await self.load_history()
        turns = normalize_history(history)
        if turns and turns[-1].role == "user":
            turns.pop()

        try:
            reply = await self._run(utterance, persona, turns)
        except TransportError as exc:
            logger.warning("sendMessage failed (%s): %s", exc.kind, exc)
            if exc.kind is ErrorKind.QUOTA:
                self._governor.start_cooldown(self._settings.quota_cooldown_seconds)
            return AgentReply(text=fallback_reply(exc))

        await self._persist(utterance, reply, persona)
        return reply

    async def _run(
        self, utterance: str, persona: Persona, turns: list[ConversationTurn]
    ) -> AgentReply:
        system = build_system_instruction(
            persona,
            self._now(),
            timezone=self._settings.timezone,
            currency=self._settings.currency_symbol,
        )
        chat = self._transport.start_chat(
            system=system, tools=self._registry.get_schemas(), history=turns
        )
        response = await self._governor.submit(lambda: chat.send(utterance))
        actions: list[AgenticAction] = []

        max_rounds = self._settings.max_tool_rounds
        for round_num in range(max_rounds):
            if not response.tool_calls:
                return AgentReply(text=response.text, actions=actions)

            logger.info(
                "Round %d: %d tool call(s): %s",
                round_num + 1,
                len(response.tool_calls),
                ", ".join(c.name for c in response.tool_calls),
            )
            outcomes = await self._execute_round(response, actions)
            response = await self._governor.submit(lambda o=outcomes: chat.send(o))

        if response.tool_calls:
            logger.warning("Hit max tool rounds (%d)", max_rounds)
        return AgentReply(text=response.text, actions=actions)

    async def _execute_round(
        self, response: ModelResponse, actions: list[AgenticAction]
    ) -> list[ToolOutcome]:
        """Run every call of one round concurrently; keep results in request order."""
        calls = response.tool_calls
        results = await asyncio.gather(*(
            self._registry.execute(call.name, call.arguments, ctx=self._tool_context)
            for call in calls
        ))

        outcomes: list[ToolOutcome] = []
        for call, result in zip(calls, results, strict=True):
            if result.success and result.action is not None:
                actions.append(result.action)
            outcomes.append(
                ToolOutcome(call=call, content=result.to_content(), is_error=not result.success)
            )
        return outcomes

    async def _persist(self, utterance: str, reply: AgentReply, persona: Persona) -> None:
        sent_at = self._now()
        await self._store.create(
            ChatMessage(text=utterance, is_from_user=True, timestamp=sent_at, persona=persona.value)
        )
        await self._store.create(
            ChatMessage(
                text=reply.text, is_from_user=False, timestamp=self._now(), persona=persona.value
            )
        )
