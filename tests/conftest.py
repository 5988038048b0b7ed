"""Shared helpers for streaming tests."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from zaica.config import Config, PRESETS, ResolvedConfig

COMPLETIONS_URL = "http://llm.test/v1/chat/completions"


def data_line(payload: dict[str, Any]) -> str:
    """One SSE ``data:`` line for a JSON payload."""
    return "data: " + json.dumps(payload)


def content_chunk(text: str, finish_reason: str | None = None) -> str:
    choice: dict[str, Any] = {"index": 0, "delta": {"content": text}}
    if finish_reason:
        choice["finish_reason"] = finish_reason
    return data_line({"choices": [choice]})


def reasoning_chunk(text: str) -> str:
    return data_line({"choices": [{"index": 0, "delta": {"reasoning_content": text}}]})


def tool_chunk(
    index: int = 0,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> str:
    tc: dict[str, Any] = {"index": index, "function": {}}
    if call_id is not None:
        tc["id"] = call_id
        tc["type"] = "function"
    if name is not None:
        tc["function"]["name"] = name
    if arguments is not None:
        tc["function"]["arguments"] = arguments
    return data_line({"choices": [{"index": 0, "delta": {"tool_calls": [tc]}}]})


def finish_chunk(reason: str = "stop", usage: dict[str, int] | None = None) -> str:
    payload: dict[str, Any] = {"choices": [{"index": 0, "delta": {}, "finish_reason": reason}]}
    if usage is not None:
        payload["usage"] = usage
    return data_line(payload)


def sse_body(*lines: str) -> bytes:
    """Frame lines the way providers do: each event followed by a blank line."""
    return "".join(f"{line}\n\n" for line in lines).encode("utf-8")


def chunked(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


class RecordingDisplay:
    """StreamDisplay that records every callback in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    @property
    def tokens(self) -> list[str]:
        return [arg for kind, arg in self.calls if kind == "token"]

    @property
    def errors(self) -> list[str]:
        return [arg for kind, arg in self.calls if kind == "error"]

    def token(self, text: str) -> None:
        self.calls.append(("token", text))

    def reasoning_start(self) -> None:
        self.calls.append(("reasoning_start", ""))

    def reasoning(self, text: str) -> None:
        self.calls.append(("reasoning", text))

    def reasoning_end(self) -> None:
        self.calls.append(("reasoning_end", ""))

    def tool_call(self, name: str) -> None:
        self.calls.append(("tool_call", name))

    def error(self, message: str) -> None:
        self.calls.append(("error", message))


def sse_transport(
    chunks: list[bytes] | bytes,
    status_code: int = 200,
    seen: list[httpx.Request] | None = None,
    content_type: str = "text/event-stream",
) -> httpx.MockTransport:
    """MockTransport answering every request with the given body chunks."""
    if isinstance(chunks, bytes):
        chunks = [chunks]

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(
            status_code,
            headers={"content-type": content_type},
            content=iter(list(chunks)),
        )

    return httpx.MockTransport(handler)


@pytest.fixture
def resolved() -> ResolvedConfig:
    return ResolvedConfig(
        config=Config(provider="openai", model="test-model", max_tokens=256, temperature=0.25),
        provider=PRESETS["openai"],
        model="test-model",
        completions_url=COMPLETIONS_URL,
        api_key="sk-test-key-123456",
        key_source="override",
    )


@pytest.fixture
def make_http() -> Callable[[httpx.MockTransport], httpx.Client]:
    clients: list[httpx.Client] = []

    def _make(transport: httpx.MockTransport) -> httpx.Client:
        client = httpx.Client(transport=transport)
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.close()
