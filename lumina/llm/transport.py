"""Remote model transport — request/response contract and the Anthropic adapter.

The orchestrator only depends on the small contract defined here:

- ``Transport.start_chat(system, tools, history)`` opens a multi-round
  exchange; ``ChatExchange.send()`` takes either the user's text or the
  tool outcomes of the previous round and returns a ``ModelResponse``.
- ``Transport.complete(prompt)`` is a single-shot, tool-free completion.

Failures come back as ``TransportError`` carrying an ``ErrorKind``.
``classify_error()`` is the only place that looks at SDK exception types
and message text to decide between quota, auth and generic faults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

import anthropic

if TYPE_CHECKING:
    from collections.abc import Sequence

    from lumina.llm.orchestrator import ConversationTurn

logger = logging.getLogger(__name__)

_QUOTA_MARKERS = ("429", "quota", "rate limit", "rate_limit", "resource_exhausted")
_AUTH_MARKERS = ("permission_denied", "unauthenticated", "invalid x-api-key", "api key")


class ErrorKind(StrEnum):
    QUOTA = "quota"
    AUTH = "auth"
    TRANSPORT = "transport"


class TransportError(Exception):
    """A remote model call failed."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


@dataclass
class ToolCall:
    """A structured call the model wants the host to run."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelResponse:
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class ToolOutcome:
    """The serialized result of one ToolCall, sent back on the next round."""

    call: ToolCall
    content: str
    is_error: bool = False


class ChatExchange(Protocol):
    async def send(self, message: str | list[ToolOutcome]) -> ModelResponse: ...


class Transport(Protocol):
    def start_chat(
        self,
        *,
        system: str,
        tools: list[dict[str, Any]],
        history: Sequence[ConversationTurn],
    ) -> ChatExchange: ...

    async def complete(self, prompt: str, *, system: str | None = None) -> str: ...


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an SDK exception to an ErrorKind."""
    if isinstance(exc, anthropic.RateLimitError):
        return ErrorKind.QUOTA
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return ErrorKind.AUTH

    text = str(exc).lower()
    if isinstance(exc, anthropic.APIStatusError):
        if exc.status_code == 429:
            return ErrorKind.QUOTA
        if exc.status_code in (401, 403):
            return ErrorKind.AUTH
    if any(marker in text for marker in _QUOTA_MARKERS):
        return ErrorKind.QUOTA
    if any(marker in text for marker in _AUTH_MARKERS):
        return ErrorKind.AUTH
    return ErrorKind.TRANSPORT


def _serialize_content(content: list[Any]) -> list[dict[str, Any]]:
    """Convert SDK content blocks to plain dicts for message history."""
    result: list[dict[str, Any]] = []
    for block in content:
        if block.type == "text":
            result.append({"type": "text", "text": block.text})
        elif block.type == "tool_use":
            result.append({
                "type": "tool_use",
                "id": block.id,
                "name": block.name,
                "input": block.input,
            })
    return result


def _to_response(message: Any) -> ModelResponse:
    text = "".join(b.text for b in message.content if b.type == "text")
    calls = [
        ToolCall(id=b.id, name=b.name, arguments=dict(b.input or {}))
        for b in message.content
        if b.type == "tool_use"
    ]
    return ModelResponse(text=text, tool_calls=calls)


class AnthropicTransport:
    """Transport backed by the Anthropic Messages API.

    The SDK client is created lazily so a missing API key only surfaces
    as an auth ``TransportError`` on first use, never at startup.
    """

    def __init__(self, api_key: str, model: str, max_tokens: int = 2048) -> None:
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self._client: anthropic.AsyncAnthropic | None = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if not self._api_key.strip():
            raise TransportError(ErrorKind.AUTH, "ANTHROPIC_API_KEY is not configured")
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def create_message(self, **kwargs: Any) -> Any:
        """Call ``messages.create`` and translate SDK failures."""
        client = self._get_client()
        kwargs.setdefault("model", self._model)
        kwargs.setdefault("max_tokens", self._max_tokens)
        try:
            return await client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            kind = classify_error(exc)
            logger.warning("Model request failed (%s): %s", kind, exc)
            raise TransportError(kind, str(exc)) from exc

    def start_chat(
        self,
        *,
        system: str,
        tools: list[dict[str, Any]],
        history: Sequence[ConversationTurn],
    ) -> AnthropicChat:
        return AnthropicChat(self, system=system, tools=tools, history=history)

    async def complete(self, prompt: str, *, system: str | None = None) -> str:
        """Single-shot call: no tools, no history."""
        kwargs: dict[str, Any] = {"messages": [{"role": "user", "content": prompt}]}
        if system is not None:
            kwargs["system"] = system
        message = await self.create_message(**kwargs)
        return _to_response(message).text


class AnthropicChat:
    """One multi-round exchange; keeps the running message list."""

    def __init__(
        self,
        transport: AnthropicTransport,
        *,
        system: str,
        tools: list[dict[str, Any]],
        history: Sequence[ConversationTurn],
    ) -> None:
        self._transport = transport
        self._system = system
        self._tools = tools
        self.messages: list[dict[str, Any]] = [
            {"role": "user" if turn.role == "user" else "assistant", "content": turn.text}
            for turn in history
        ]

    async def send(self, message: str | list[ToolOutcome]) -> ModelResponse:
        if isinstance(message, str):
            self.messages.append({"role": "user", "content": message})
        else:
            self.messages.append({
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": outcome.call.id,
                        "content": outcome.content,
                        "is_error": outcome.is_error,
                    }
                    for outcome in message
                ],
            })

        kwargs: dict[str, Any] = {"system": self._system, "messages": list(self.messages)}
        if self._tools:
            kwargs["tools"] = self._tools

        try:
            response = await self._transport.create_message(**kwargs)
        except TransportError:
            self.messages.pop()  # the turn was never answered
            raise

        self.messages.append({
            "role": "assistant",
            "content": _serialize_content(response.content),
        })
        return _to_response(response)
