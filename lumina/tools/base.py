"""Base types for the tool-calling framework."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from lumina.config import Settings
    from lumina.llm.content import ContentService
    from lumina.store.records import RecordStore


class ActionKind(StrEnum):
    TRANSACTION = "transaction"
    SCHEDULE = "schedule"
    JOURNAL = "journal"
    QUOTE = "quote"
    SEARCH = "search"
    NONE = "none"


@dataclass
class AgenticAction:
    """A record mutation performed on the user's behalf during one turn."""

    kind: ActionKind
    payload: dict[str, Any] = field(default_factory=dict)
    executed: bool = True


@dataclass
class ToolResult:
    """Result of a tool execution.

    Every tool returns one of these. The orchestrator serializes it
    into the text that is fed back to the model. Mutating tools attach
    the ``action`` they performed.
    """

    data: dict[str, Any] | None = None
    error: str | None = None
    action: AgenticAction | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_content(self) -> str:
        """Serialize for the model's tool_result content field."""
        if self.error:
            return json.dumps({"error": self.error}, ensure_ascii=False)
        return json.dumps(self.data or {}, ensure_ascii=False, default=str)


class ToolParams(BaseModel):
    """Base class for tool parameter models.

    Subclass with Field() definitions. The JSON schema is auto-generated
    via model_json_schema() for the model's tool definitions.
    """

    model_config = ConfigDict(populate_by_name=True)


@dataclass
class ToolContext:
    """Everything a tool handler may touch, passed explicitly per call."""

    store: RecordStore
    content: ContentService
    settings: Settings
    now: Callable[[], datetime]
