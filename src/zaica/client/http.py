"""Streaming chat completion over an OpenAI-compatible endpoint.

One call to :func:`stream_chat_completion` is a single pass: connect, send,
check the status, read SSE lines until the stream is done, then hand back a
:class:`CompletionResult`.  Nothing is retried here.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Sequence, Union

import httpx

from zaica.client.display import SilentDisplay, StreamDisplay
from zaica.client.errors import ApiError, ConnectionFailed, HttpError, RequestFailed
from zaica.client.lines import LineReader
from zaica.client.message import (
    ChatMessage,
    ToolCall,
    ToolDef,
    build_request_body,
    system,
    user,
)
from zaica.client.sse import (
    ApiErrorEvent,
    ContentEvent,
    DoneEvent,
    ReasoningEvent,
    SkipEvent,
    TokenUsage,
    ToolCallDeltaEvent,
    extract_error_message,
    parse_sse_line,
)
from zaica.client.tool_calls import ToolCallDeltaAccumulator
from zaica.config import ResolvedConfig

_logger = logging.getLogger(__name__)

# Cap on how much of an error body is read before giving up on it
_MAX_ERROR_BODY = 64 * 1024


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class TextResponse:
    text: str


@dataclass
class ToolCallsResponse:
    tool_calls: list[ToolCall]


@dataclass
class CompletionResult:
    """Outcome of one streaming completion.

    ``response`` is either the accumulated text or the finalized tool calls,
    never both.  ``cancelled`` is set when the cancel check stopped the
    stream early; the response then holds whatever had arrived.
    """

    response: Union[TextResponse, ToolCallsResponse]
    usage: TokenUsage | None = None
    reasoning: str = ""
    cancelled: bool = False

    @property
    def has_tool_calls(self) -> bool:
        return isinstance(self.response, ToolCallsResponse)

    @property
    def text(self) -> str | None:
        if isinstance(self.response, TextResponse):
            return self.response.text
        return None

    @property
    def tool_calls(self) -> list[ToolCall]:
        if isinstance(self.response, ToolCallsResponse):
            return self.response.tool_calls
        return []


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class CancelFlag:
    """Cooperative cancellation shared between the stream and an input source.

    Pass ``flag.is_set`` as ``should_cancel``; set it from a signal handler
    or another thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    def is_set(self) -> bool:
        return self._event.is_set()


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

def _build_headers(api_key: str | None) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Accept": "text/event-stream",
        # Compressed bodies would hide the raw SSE framing
        "Accept-Encoding": "identity",
    }
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _read_error_body(resp: httpx.Response) -> str:
    body = bytearray()
    try:
        for chunk in resp.iter_bytes():
            body += chunk
            if len(body) >= _MAX_ERROR_BODY:
                break
    except httpx.HTTPError as e:
        _logger.debug("Could not read error body: %s", e)
    return bytes(body[:_MAX_ERROR_BODY]).decode("utf-8", errors="replace")


def _read_bare_json(first_line: str, reader: LineReader) -> str:
    """Join the rest of a bare JSON body onto its first line, capped."""
    parts = [first_line]
    size = len(first_line)
    try:
        for raw in reader:
            if size >= _MAX_ERROR_BODY:
                break
            line = raw.decode("utf-8", errors="replace")
            parts.append(line)
            size += len(line) + 1
    except httpx.HTTPError as e:
        _logger.debug("Could not read the rest of a bare JSON body: %s", e)
    return "\n".join(parts).strip()


class _StreamState:
    """Buffers owned by one invocation."""

    def __init__(self, display: StreamDisplay) -> None:
        self.display = display
        self.text: list[str] = []
        self.reasoning: list[str] = []
        self.tool_calls = ToolCallDeltaAccumulator()
        self.usage: TokenUsage | None = None
        self.in_reasoning = False

    def on_reasoning(self, text: str) -> None:
        if not self.in_reasoning:
            self.in_reasoning = True
            self.display.reasoning_start()
        self.reasoning.append(text)
        self.display.reasoning(text)

    def on_content(self, text: str) -> None:
        if self.in_reasoning:
            self.in_reasoning = False
            self.display.reasoning_end()
        self.text.append(text)
        self.display.token(text)

    def on_tool_call_delta(self, event: ToolCallDeltaEvent) -> None:
        if self.tool_calls.feed(event.delta):
            self.display.tool_call(self.tool_calls.current.name or "?")

    def result(self, cancelled: bool) -> CompletionResult:
        response: Union[TextResponse, ToolCallsResponse]
        if self.tool_calls.has_calls():
            # Tool-call intent supersedes any narration streamed before it
            response = ToolCallsResponse(self.tool_calls.finalize())
        else:
            response = TextResponse("".join(self.text))
        return CompletionResult(
            response=response,
            usage=self.usage,
            reasoning="".join(self.reasoning),
            cancelled=cancelled,
        )


def stream_chat_completion(
    http: httpx.Client,
    completions_url: str,
    api_key: str | None,
    body: bytes,
    *,
    display: StreamDisplay | None = None,
    should_cancel: Callable[[], bool] | None = None,
    silent: bool = False,
) -> CompletionResult:
    """POST ``body`` to ``completions_url`` and consume the SSE response.

    Raises ``ConnectionFailed``, ``RequestFailed``, ``HttpError`` or
    ``ApiError``.  When ``should_cancel`` returns True between lines the
    stream stops and the partial result is returned (``cancelled=True``).
    ``silent`` suppresses every display side effect and the cancel check.
    """
    if silent or display is None:
        display = SilentDisplay()

    try:
        request = http.build_request(
            "POST", completions_url, content=body, headers=_build_headers(api_key),
        )
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
        display.error(f"Invalid URL: {completions_url}")
        raise ConnectionFailed(f"Invalid URL {completions_url}: {e}") from e

    _logger.debug("POST %s (%d bytes)", completions_url, len(body))
    try:
        resp = http.send(request, stream=True)
    except (httpx.ConnectError, httpx.ConnectTimeout, httpx.UnsupportedProtocol,
            httpx.ProxyError) as e:
        display.error(f"Failed to connect to {completions_url}: {e}")
        raise ConnectionFailed(f"Failed to connect to {completions_url}: {e}") from e
    except httpx.TransportError as e:
        display.error(f"Failed to send request: {e}")
        raise RequestFailed(f"Request failed: {e}") from e

    try:
        if resp.status_code >= 400:
            err_body = _read_error_body(resp)
            message = extract_error_message(err_body)
            _logger.warning("Completion endpoint returned HTTP %d", resp.status_code)
            if message is not None:
                display.error(f"HTTP {resp.status_code} — {message}")
            else:
                display.error(f"HTTP {resp.status_code}\n{err_body}" if err_body
                              else f"HTTP {resp.status_code}")
            raise HttpError(resp.status_code, message if message is not None else err_body)

        state = _StreamState(display)
        cancelled = False
        first_line = True
        try:
            reader = LineReader(resp.iter_bytes())
            for raw_line in reader:
                if not silent and should_cancel is not None and should_cancel():
                    _logger.debug("Stream cancelled by caller")
                    cancelled = True
                    break

                line = raw_line.decode("utf-8", errors="replace")
                if first_line and line:
                    first_line = False
                    if line.startswith("{"):
                        # Plain JSON error delivered with a 2xx status
                        bare = _read_bare_json(line, reader)
                        message = extract_error_message(bare) or bare
                        _logger.warning("Provider returned a bare JSON body: %s", message)
                        display.error(message)
                        raise ApiError(message)

                event = parse_sse_line(line)
                if isinstance(event, ContentEvent):
                    state.on_content(event.text)
                    if event.done:
                        if event.usage is not None:
                            state.usage = event.usage
                        break
                elif isinstance(event, ReasoningEvent):
                    state.on_reasoning(event.text)
                elif isinstance(event, ToolCallDeltaEvent):
                    state.on_tool_call_delta(event)
                elif isinstance(event, DoneEvent):
                    if event.usage is not None:
                        state.usage = event.usage
                    break
                elif isinstance(event, ApiErrorEvent):
                    _logger.warning("API error in stream: %s", event.message)
                    display.error(f"API Error: {event.message}")
                    raise ApiError(event.message)
                elif isinstance(event, SkipEvent):
                    pass
                else:
                    raise TypeError(f"Unhandled SSE event: {event!r}")
        except httpx.HTTPError as e:
            _logger.warning("Stream interrupted: %s", e)
            display.error(f"Stream interrupted: {e}")
            raise RequestFailed(f"Stream interrupted: {e}") from e
    finally:
        resp.close()

    return state.result(cancelled)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class CompletionClient:
    """Streaming completion client bound to one resolved configuration."""

    def __init__(
        self,
        resolved: ResolvedConfig,
        timeout: float = 120,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.resolved = resolved
        # Chunks arrive frequently once generation starts, so a long gap
        # between reads means something is wrong.
        self._http = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=30, read=60),
            transport=transport,
        )

    def stream(
        self,
        body: bytes,
        *,
        display: StreamDisplay | None = None,
        should_cancel: Callable[[], bool] | None = None,
        silent: bool = False,
    ) -> CompletionResult:
        return stream_chat_completion(
            self._http,
            self.resolved.completions_url,
            self.resolved.api_key,
            body,
            display=display,
            should_cancel=should_cancel,
            silent=silent,
        )

    def chat_messages(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDef] | None = None,
        *,
        display: StreamDisplay | None = None,
        should_cancel: Callable[[], bool] | None = None,
        silent: bool = False,
    ) -> CompletionResult:
        """Send a full conversation and stream the reply."""
        body = build_request_body(
            self.resolved.model,
            messages,
            max_tokens=self.resolved.max_tokens,
            temperature=self.resolved.temperature,
            stream=True,
            tools=tools,
        )
        return self.stream(
            body, display=display, should_cancel=should_cancel, silent=silent,
        )

    def chat(
        self,
        prompt: str,
        *,
        display: StreamDisplay | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> CompletionResult:
        """Single-shot prompt with the configured system prompt and no tools."""
        messages = [system(self.resolved.system_prompt), user(prompt)]
        result = self.chat_messages(
            messages, display=display, should_cancel=should_cancel,
        )
        if result.has_tool_calls:
            message = "Model requested tool calls but no tools were offered"
            if display is not None:
                display.error(message)
            raise ApiError(message)
        return result

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> CompletionClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
