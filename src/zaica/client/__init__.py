"""Streaming chat-completion client."""

from zaica.client.display import ConsoleDisplay, SilentDisplay, StreamDisplay
from zaica.client.errors import (
    ApiError,
    ConnectionFailed,
    HttpError,
    RequestFailed,
    StreamError,
)
from zaica.client.http import (
    CancelFlag,
    CompletionClient,
    CompletionResult,
    TextResponse,
    ToolCallsResponse,
    stream_chat_completion,
)
from zaica.client.lines import LineReader
from zaica.client.message import (
    ChatMessage,
    FunctionCall,
    Role,
    TextMessage,
    ToolCall,
    ToolDef,
    ToolResultMessage,
    ToolUseMessage,
    build_request_body,
)
from zaica.client.sse import SseEvent, TokenUsage, ToolCallDelta, parse_sse_line
from zaica.client.tool_calls import ToolCallAccumulator, ToolCallDeltaAccumulator

__all__ = [
    "ApiError",
    "CancelFlag",
    "ChatMessage",
    "CompletionClient",
    "CompletionResult",
    "ConnectionFailed",
    "ConsoleDisplay",
    "FunctionCall",
    "HttpError",
    "LineReader",
    "RequestFailed",
    "Role",
    "SilentDisplay",
    "SseEvent",
    "StreamDisplay",
    "StreamError",
    "TextMessage",
    "TextResponse",
    "TokenUsage",
    "ToolCall",
    "ToolCallAccumulator",
    "ToolCallDelta",
    "ToolCallDeltaAccumulator",
    "ToolCallsResponse",
    "ToolDef",
    "ToolResultMessage",
    "ToolUseMessage",
    "build_request_body",
    "parse_sse_line",
    "stream_chat_completion",
]
