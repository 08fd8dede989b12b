"""Assistant — the process-wide context object wiring every component together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from lumina.config import settings as default_settings
from lumina.insights import InsightGenerator
from lumina.llm.content import ContentService
from lumina.llm.governor import RequestGovernor
from lumina.llm.orchestrator import Orchestrator
from lumina.llm.transport import AnthropicTransport
from lumina.store.records import RecordStore
from lumina.tools import registry as default_registry

if TYPE_CHECKING:
    from lumina.config import Settings
    from lumina.llm.transport import Transport
    from lumina.tools.registry import ToolRegistry


@dataclass
class Assistant:
    """Handles to the shared components. Build one with ``create_assistant()``."""

    settings: Settings
    store: RecordStore
    governor: RequestGovernor
    transport: Transport
    content: ContentService
    orchestrator: Orchestrator
    insights: InsightGenerator


def create_assistant(
    settings: Settings | None = None,
    *,
    store: RecordStore | None = None,
    transport: Transport | None = None,
    governor: RequestGovernor | None = None,
    registry: ToolRegistry | None = None,
) -> Assistant:
    """Construct the component graph once, at process start.

    Any component may be supplied to override the default (tests pass
    fakes). The store still needs ``await store.init()`` before use.
    """
    settings = settings or default_settings
    store = store or RecordStore(settings.database_path, chat_limit=settings.chat_retention_limit)
    transport = transport or AnthropicTransport(
        api_key=settings.anthropic_api_key,
        model=settings.claude_model,
        max_tokens=settings.max_tokens,
    )
    governor = governor or RequestGovernor.from_settings(settings)
    content = ContentService(transport, governor, settings)

    orchestrator = Orchestrator(
        transport=transport,
        governor=governor,
        store=store,
        registry=registry or default_registry,
        content=content,
        settings=settings,
    )
    insights = InsightGenerator(
        transport=transport,
        governor=governor,
        store=store,
        content=content,
        settings=settings,
    )
    return Assistant(
        settings=settings,
        store=store,
        governor=governor,
        transport=transport,
        content=content,
        orchestrator=orchestrator,
        insights=insights,
    )
