"""Chat message model and request body builder for ``/chat/completions``."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Sequence, Union


class Role(enum.Enum):
    """Role of a text message in the conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# ---------------------------------------------------------------------------
# Tool call types
# ---------------------------------------------------------------------------

@dataclass
class FunctionCall:
    """Function part of a tool call.  ``arguments`` is raw JSON text."""

    name: str
    arguments: str = ""


@dataclass
class ToolCall:
    """A tool invocation requested by the model.

    ``id`` correlates the ``ToolUseMessage`` that carries this call with the
    ``ToolResultMessage`` answering it.
    """

    id: str
    function: FunctionCall

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }


@dataclass(frozen=True)
class ToolDef:
    """A tool advertised to the provider.

    ``parameters`` is JSON-schema text.  It is decoded once here so that an
    invalid schema fails when the definition is built, not mid-request.
    """

    name: str
    description: str
    parameters: str = '{"type":"object","properties":{}}'
    _schema: Any = field(init=False, repr=False, compare=False, default=None)

    def __post_init__(self) -> None:
        try:
            schema = json.loads(self.parameters)
        except json.JSONDecodeError as e:
            raise ValueError(f"Tool {self.name!r} has invalid parameter schema: {e}") from e
        object.__setattr__(self, "_schema", schema)

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self._schema,
            },
        }


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@dataclass
class TextMessage:
    """Plain text turn from the system, the user or the assistant."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class ToolUseMessage:
    """Assistant turn requesting tool execution.  Carries no text."""

    tool_calls: list[ToolCall]

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": "assistant",
            "content": None,
            "tool_calls": [tc.to_dict() for tc in self.tool_calls],
        }


@dataclass
class ToolResultMessage:
    """Result of a tool call, fed back to the model."""

    tool_call_id: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": "tool",
            "tool_call_id": self.tool_call_id,
            "content": self.content,
        }


ChatMessage = Union[TextMessage, ToolUseMessage, ToolResultMessage]


def system(content: str) -> TextMessage:
    return TextMessage(Role.SYSTEM, content)


def user(content: str) -> TextMessage:
    return TextMessage(Role.USER, content)


def assistant(content: str) -> TextMessage:
    return TextMessage(Role.ASSISTANT, content)


def message_to_dict(msg: ChatMessage) -> dict[str, Any]:
    """Serialize one message into its wire form."""
    if isinstance(msg, (TextMessage, ToolUseMessage, ToolResultMessage)):
        return msg.to_dict()
    raise TypeError(f"Unknown chat message type: {type(msg).__name__}")


def validate_history(messages: Sequence[ChatMessage]) -> None:
    """Check that every tool result answers a tool call issued earlier.

    Raises ``ValueError`` naming the first orphaned ``tool_call_id``.
    """
    issued: set[str] = set()
    for msg in messages:
        if isinstance(msg, ToolUseMessage):
            issued.update(tc.id for tc in msg.tool_calls)
        elif isinstance(msg, ToolResultMessage) and msg.tool_call_id not in issued:
            raise ValueError(
                f"Tool result {msg.tool_call_id!r} does not answer any earlier tool call"
            )


# ---------------------------------------------------------------------------
# Request body
# ---------------------------------------------------------------------------

def build_request_body(
    model: str,
    messages: Sequence[ChatMessage],
    *,
    max_tokens: int = 8192,
    temperature: float = 0.0,
    stream: bool = True,
    tools: Sequence[ToolDef] | None = None,
) -> bytes:
    """Build the JSON body for an OpenAI-compatible chat completion.

    Temperature is rounded to one decimal digit.  Non-ASCII text is kept as
    UTF-8; control characters, quotes and backslashes are escaped.  Lone
    surrogates, which UTF-8 cannot carry, become ``?``.
    """
    payload: dict[str, Any] = {
        "model": model,
        "messages": [message_to_dict(m) for m in messages],
        "max_tokens": max_tokens,
        "temperature": float(round(temperature, 1)),
    }
    if stream:
        payload["stream"] = True
        # Ask for token counts on the terminal chunk
        payload["stream_options"] = {"include_usage": True}
    if tools:
        payload["tools"] = [t.to_openai_schema() for t in tools]

    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode(
        "utf-8", errors="replace",
    )
