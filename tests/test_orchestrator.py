"""Tests for the Orchestrator tool-calling loop."""

import asyncio
import itertools
import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from conftest import FIXED_NOW
from fakes import FakeClock, FakeTransport, calls, reply

from lumina.config import Settings
from lumina.llm.governor import RequestGovernor
from lumina.llm.orchestrator import (
    AUTH_MESSAGE,
    QUOTA_MESSAGE,
    ConversationTurn,
    Orchestrator,
    normalize_history,
)
from lumina.llm.prompt import Persona
from lumina.llm.transport import ErrorKind, ToolOutcome, TransportError
from lumina.store.models import ChatMessage
from lumina.store.records import RecordStore
from lumina.tools import registry
from lumina.tools.base import ActionKind

SPEND = {"type": "expense", "amount": 250, "category": "Food", "description": "lunch"}
JOURNAL = {"content": "Felt great after yoga", "mood": "energetic"}
MEETING = {"title": "Standup", "date": "2026-10-15", "time": "10:00", "duration": 15}


@pytest.fixture
def make_orchestrator(
    governor: RequestGovernor,
    store: RecordStore,
    content: MagicMock,
    settings: Settings,
    clock: FakeClock,
):
    def factory(script=None, **overrides) -> tuple[Orchestrator, FakeTransport]:
        transport = FakeTransport(script, clock=clock)
        orchestrator = Orchestrator(
            transport=transport,
            governor=governor,
            store=store,
            registry=registry,
            content=content,
            settings=settings.model_copy(update=overrides) if overrides else settings,
            now=lambda: FIXED_NOW,
        )
        return orchestrator, transport

    return factory


# -- normalize_history ---------------------------------------------------------


@pytest.mark.parametrize("length", range(7))
def test_normalize_history_always_alternates_from_user(length: int) -> None:
    for roles in itertools.product(("user", "model"), repeat=length):
        turns = [ConversationTurn(role, f"t{i}") for i, role in enumerate(roles)]

        kept = normalize_history(turns)

        if kept:
            assert kept[0].role == "user"
        for prev, cur in itertools.pairwise(kept):
            assert prev.role != cur.role
        # kept turns are a subsequence of the input
        positions = [turns.index(t) for t in kept]
        assert positions == sorted(positions)


def test_normalize_history_drops_leading_model_and_repeats() -> None:
    turns = [
        ConversationTurn("model", "Welcome!"),
        ConversationTurn("user", "hi"),
        ConversationTurn("user", "hello?"),
        ConversationTurn("model", "Hey"),
        ConversationTurn("model", "Anyone?"),
        ConversationTurn("user", "bye"),
    ]
    assert [t.text for t in normalize_history(turns)] == ["hi", "Hey", "bye"]


# -- Plain replies -------------------------------------------------------------


async def test_reply_without_tools(make_orchestrator, store: RecordStore) -> None:
    orchestrator, transport = make_orchestrator([reply("Namaste! How can I help?")])

    result = await orchestrator.send_message("hello", history=[])

    assert result.text == "Namaste! How can I help?"
    assert result.actions == []
    assert len(transport.sent) == 1
    assert transport.sent[0].message == "hello"

    messages = await store.recent_chat(10)
    assert [(m.is_from_user, m.text) for m in messages] == [
        (True, "hello"),
        (False, "Namaste! How can I help?"),
    ]
    assert all(m.persona == "GENERAL" for m in messages)


async def test_tool_schemas_offered_every_time(make_orchestrator) -> None:
    orchestrator, transport = make_orchestrator([reply("ok")])
    await orchestrator.send_message("hi", history=[])
    names = {t["name"] for t in transport.chats[0].tools}
    assert names == set(registry.tool_names)


async def test_persona_shapes_system_instruction(make_orchestrator, store: RecordStore) -> None:
    orchestrator, transport = make_orchestrator([reply("Let's budget.")])

    await orchestrator.send_message("help me save", persona="financial", history=[])

    assert "Financial Advisor" in transport.chats[0].system
    messages = await store.recent_chat(10)
    assert {m.persona for m in messages} == {"FINANCIAL"}


# -- Tool rounds ---------------------------------------------------------------


async def test_transaction_round(make_orchestrator, store: RecordStore) -> None:
    orchestrator, transport = make_orchestrator([
        calls(("logTransaction", SPEND)),
        reply("Logged ₹250 for Food."),
    ])

    result = await orchestrator.send_message("I spent 250 on lunch", history=[])

    assert result.text == "Logged ₹250 for Food."
    assert len(result.actions) == 1
    action = result.actions[0]
    assert action.kind is ActionKind.TRANSACTION
    assert action.executed
    assert action.payload == SPEND

    (stored,) = await store.transactions()
    assert stored.amount == 250

    (outcome,) = transport.sent[1].message
    assert isinstance(outcome, ToolOutcome)
    assert outcome.call.name == "logTransaction"
    assert not outcome.is_error
    assert json.loads(outcome.content)["result"] == "Transaction logged: ₹250 for Food"


async def test_actions_follow_request_order(make_orchestrator) -> None:
    orchestrator, transport = make_orchestrator([
        calls(
            ("addJournalEntry", JOURNAL),
            ("logTransaction", SPEND),
            ("scheduleMeeting", MEETING),
        ),
        reply("All done."),
    ])

    result = await orchestrator.send_message("do three things", history=[])

    assert [a.kind for a in result.actions] == [
        ActionKind.JOURNAL,
        ActionKind.TRANSACTION,
        ActionKind.SCHEDULE,
    ]
    outcomes = transport.sent[1].message
    assert [o.call.id for o in outcomes] == ["call_0", "call_1", "call_2"]


async def test_actions_accumulate_across_rounds(make_orchestrator) -> None:
    orchestrator, _ = make_orchestrator([
        calls(("logTransaction", SPEND)),
        calls(("addJournalEntry", JOURNAL)),
        reply("Both saved."),
    ])

    result = await orchestrator.send_message("log and journal", history=[])

    assert [a.kind for a in result.actions] == [ActionKind.TRANSACTION, ActionKind.JOURNAL]


async def test_unknown_tool_reported_to_model(make_orchestrator) -> None:
    orchestrator, transport = make_orchestrator([
        calls(("deleteEverything", {})),
        reply("Sorry, I can't do that."),
    ])

    result = await orchestrator.send_message("wipe my data", history=[])

    assert result.text == "Sorry, I can't do that."
    assert result.actions == []
    (outcome,) = transport.sent[1].message
    assert outcome.is_error
    assert json.loads(outcome.content) == {"error": "Unknown function"}


async def test_failed_tool_produces_no_action(make_orchestrator, store: RecordStore) -> None:
    orchestrator, transport = make_orchestrator([
        calls(("logTransaction", {**SPEND, "amount": -5}), ("addJournalEntry", JOURNAL)),
        reply("Saved the journal; the amount looked wrong."),
    ])

    result = await orchestrator.send_message("mixed bag", history=[])

    assert [a.kind for a in result.actions] == [ActionKind.JOURNAL]
    assert await store.transactions() == []
    bad, good = transport.sent[1].message
    assert bad.is_error
    assert not good.is_error


async def test_tool_rounds_are_capped(make_orchestrator) -> None:
    orchestrator, transport = make_orchestrator(
        [calls(("getDailyQuote", {})) for _ in range(5)],
        max_tool_rounds=2,
    )

    result = await orchestrator.send_message("loop forever", history=[])

    assert len(transport.sent) == 3
    assert result.actions == []


# -- History -------------------------------------------------------------------


async def test_history_loaded_from_store(make_orchestrator, store: RecordStore) -> None:
    base = FIXED_NOW - timedelta(hours=1)
    for n, (from_user, text) in enumerate([
        (False, "Welcome to Lumina!"),
        (True, "what's my balance?"),
        (False, "You have ₹5000."),
    ]):
        await store.create(
            ChatMessage(text=text, is_from_user=from_user, timestamp=base + timedelta(minutes=n))
        )
    orchestrator, transport = make_orchestrator([reply("Sure.")])

    await orchestrator.send_message("thanks")

    history = transport.chats[0].history
    assert [(t.role, t.text) for t in history] == [
        ("user", "what's my balance?"),
        ("model", "You have ₹5000."),
    ]


async def test_history_window_size(make_orchestrator, store: RecordStore) -> None:
    base = FIXED_NOW - timedelta(hours=1)
    for n in range(30):
        await store.create(
            ChatMessage(
                text=f"m{n}", is_from_user=n % 2 == 0, timestamp=base + timedelta(seconds=n)
            )
        )
    orchestrator, transport = make_orchestrator([reply("ok")])

    await orchestrator.send_message("next")

    assert [t.text for t in transport.chats[0].history] == [f"m{n}" for n in range(20, 30)]


async def test_trailing_user_turn_dropped(make_orchestrator) -> None:
    orchestrator, transport = make_orchestrator([reply("ok")])
    history = [
        ConversationTurn("user", "a"),
        ConversationTurn("model", "b"),
        ConversationTurn("user", "unanswered"),
    ]

    await orchestrator.send_message("c", history=history)

    assert [t.text for t in transport.chats[0].history] == ["a", "b"]


# -- Failures ------------------------------------------------------------------


async def test_quota_failure(
    make_orchestrator, governor: RequestGovernor, store: RecordStore
) -> None:
    orchestrator, _ = make_orchestrator([TransportError(ErrorKind.QUOTA, "429 Too Many Requests")])

    result = await orchestrator.send_message("hello", history=[])

    assert result.text == QUOTA_MESSAGE
    assert result.actions == []
    assert governor.cooldown_remaining == 60
    assert await store.recent_chat(10) == []


async def test_message_queued_behind_quota_failure_waits_for_cooldown(
    make_orchestrator,
) -> None:
    orchestrator, transport = make_orchestrator([
        TransportError(ErrorKind.QUOTA, "429 Too Many Requests"),
        reply("second"),
    ])

    first, second = await asyncio.gather(
        orchestrator.send_message("a", history=[]),
        orchestrator.send_message("b", history=[]),
    )

    assert first.text == QUOTA_MESSAGE
    assert second.text == "second"
    assert transport.sent[0].at == 1000.0
    assert transport.sent[1].at >= 1060.0


async def test_auth_failure(make_orchestrator, governor: RequestGovernor) -> None:
    orchestrator, _ = make_orchestrator([TransportError(ErrorKind.AUTH, "invalid x-api-key")])

    result = await orchestrator.send_message("hello", history=[])

    assert result.text == AUTH_MESSAGE
    assert governor.cooldown_remaining == 0


async def test_generic_failure_truncates_detail(make_orchestrator) -> None:
    detail = "x" * 300
    orchestrator, _ = make_orchestrator([TransportError(ErrorKind.TRANSPORT, detail)])

    result = await orchestrator.send_message("hello", history=[])

    assert result.text == (
        f"I apologize, but I encountered an error: {'x' * 100}. Please try again."
    )


async def test_quota_failure_mid_loop(make_orchestrator, store: RecordStore) -> None:
    orchestrator, _ = make_orchestrator([
        calls(("logTransaction", SPEND)),
        TransportError(ErrorKind.QUOTA, "quota"),
    ])

    result = await orchestrator.send_message("spent 250", history=[])

    assert result.text == QUOTA_MESSAGE
    assert len(await store.transactions()) == 1


# -- Governor interaction ------------------------------------------------------


async def test_concurrent_messages_are_spaced(make_orchestrator) -> None:
    orchestrator, transport = make_orchestrator([reply("one"), reply("two"), reply("three")])

    results = await asyncio.gather(*(
        orchestrator.send_message(text, history=[]) for text in ("a", "b", "c")
    ))

    assert [r.text for r in results] == ["one", "two", "three"]
    assert [s.message for s in transport.sent] == ["a", "b", "c"]
    assert [s.at for s in transport.sent] == [1000.0, 1003.0, 1006.0]


async def test_every_round_takes_a_permit(make_orchestrator) -> None:
    orchestrator, transport = make_orchestrator([
        calls(("getDailyQuote", {})),
        reply("Here's your quote."),
    ])

    await orchestrator.send_message("quote please", history=[])

    assert [s.at for s in transport.sent] == [1000.0, 1003.0]


async def test_cancelled_message_is_withdrawn(make_orchestrator, store: RecordStore) -> None:
    orchestrator, transport = make_orchestrator([reply("never seen"), reply("second")])
    transport.block = asyncio.Event()

    task = asyncio.create_task(orchestrator.send_message("first", history=[]))
    await transport.started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    transport.block = None
    result = await orchestrator.send_message("again", history=[])

    assert result.text == "never seen"
    texts = [m.text for m in await store.recent_chat(10)]
    assert texts == ["again", "never seen"]
