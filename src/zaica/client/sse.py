"""Classify one SSE line from a streaming chat completion into an event.

Providers disagree on where ``finish_reason``, trailing ``content`` and
``usage`` land in the final chunk, so the parser accepts every placement
seen in practice rather than assuming a single shape.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Union

_logger = logging.getLogger(__name__)

_DATA_PREFIX = "data: "
_TERMINAL_FINISH_REASONS = ("stop", "tool_calls")


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------

@dataclass
class TokenUsage:
    """Token accounting reported on the terminal chunk."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int = 0
    cached_tokens: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenUsage:
        prompt = _as_int(data.get("prompt_tokens"))
        completion = _as_int(data.get("completion_tokens"))
        total = _as_int(data.get("total_tokens")) or prompt + completion
        details = data.get("completion_tokens_details")
        reasoning = _as_int(details.get("reasoning_tokens")) if isinstance(details, dict) else 0
        prompt_details = data.get("prompt_tokens_details")
        cached = _as_int(prompt_details.get("cached_tokens")) if isinstance(prompt_details, dict) else 0
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=total,
            reasoning_tokens=reasoning,
            cached_tokens=cached,
        )


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return 0


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolCallDelta:
    """One fragment of a streamed tool call.  ``id`` only opens a call."""

    index: int = 0
    id: str | None = None
    function_name: str | None = None
    function_arguments: str | None = None


@dataclass(frozen=True)
class ContentEvent:
    """Answer text.  ``done`` marks content that arrived on the terminal chunk."""

    text: str
    done: bool = False
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class ReasoningEvent:
    text: str


@dataclass(frozen=True)
class ToolCallDeltaEvent:
    delta: ToolCallDelta


@dataclass(frozen=True)
class DoneEvent:
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class ApiErrorEvent:
    message: str


@dataclass(frozen=True)
class SkipEvent:
    pass


SKIP = SkipEvent()

SseEvent = Union[
    ContentEvent, ReasoningEvent, ToolCallDeltaEvent, DoneEvent, ApiErrorEvent, SkipEvent,
]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def extract_error_message(body: str) -> str | None:
    """Return ``error.message`` from a JSON error body, if there is one."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    err = data.get("error")
    if isinstance(err, dict) and isinstance(err.get("message"), str):
        return err["message"]
    return None


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _usage_of(data: dict[str, Any]) -> TokenUsage | None:
    usage = data.get("usage")
    if isinstance(usage, dict):
        return TokenUsage.from_dict(usage)
    return None


def parse_tool_call_delta(tc: dict[str, Any]) -> ToolCallDelta:
    """Parse one element of ``delta.tool_calls``.  Empty strings become None."""
    index = tc.get("index")
    func = tc.get("function")
    name = arguments = None
    if isinstance(func, dict):
        name = _non_empty_str(func.get("name"))
        arguments = _non_empty_str(func.get("arguments"))
    return ToolCallDelta(
        index=index if isinstance(index, int) and not isinstance(index, bool) else 0,
        id=_non_empty_str(tc.get("id")),
        function_name=name,
        function_arguments=arguments,
    )


def parse_sse_line(line: str) -> SseEvent:
    """Parse a single SSE line (without its terminator) into one event."""
    if not line or line.startswith(":"):
        return SKIP
    if not line.startswith(_DATA_PREFIX):
        return SKIP
    payload = line[len(_DATA_PREFIX):]

    if payload == "[DONE]":
        return DoneEvent()

    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, ValueError):
        if '"error"' in payload:
            return ApiErrorEvent(payload)
        return SKIP
    if not isinstance(data, dict):
        return SKIP

    err = data.get("error")
    if isinstance(err, dict) and isinstance(err.get("message"), str):
        return ApiErrorEvent(err["message"])

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return SKIP

    choice = choices[0]
    if not isinstance(choice, dict):
        return SKIP
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return SKIP

    content = _non_empty_str(delta.get("content"))

    if choice.get("finish_reason") in _TERMINAL_FINISH_REASONS:
        # Content and termination can share a chunk
        if content is not None:
            return ContentEvent(content, done=True, usage=_usage_of(data))
        return DoneEvent(_usage_of(data))

    tool_calls = delta.get("tool_calls")
    if isinstance(tool_calls, list) and tool_calls and isinstance(tool_calls[0], dict):
        if len(tool_calls) > 1:
            _logger.debug(
                "Chunk carries %d tool_call fragments; only the first is read",
                len(tool_calls),
            )
        return ToolCallDeltaEvent(parse_tool_call_delta(tool_calls[0]))

    if content is not None:
        return ContentEvent(content)

    reasoning = _non_empty_str(delta.get("reasoning_content"))
    if reasoning is not None:
        return ReasoningEvent(reasoning)

    return SKIP
