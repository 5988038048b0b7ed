"""Reassemble tool calls from streamed deltas."""

from __future__ import annotations

import logging

from zaica.client.message import FunctionCall, ToolCall
from zaica.client.sse import ToolCallDelta

_logger = logging.getLogger(__name__)


class ToolCallAccumulator:
    """Name and argument buffer for one tool call, finalized at most once."""

    def __init__(self, call_id: str, name: str = "", arguments: str = "") -> None:
        self.id = call_id
        self.name = name
        self._arguments: list[str] = [arguments] if arguments else []
        self._finalized = False

    @property
    def arguments(self) -> str:
        return "".join(self._arguments)

    def append_arguments(self, fragment: str) -> None:
        if self._finalized:
            raise RuntimeError(f"Tool call {self.id!r} is already finalized")
        self._arguments.append(fragment)

    def finalize(self) -> ToolCall:
        if self._finalized:
            raise RuntimeError(f"Tool call {self.id!r} is already finalized")
        self._finalized = True
        return ToolCall(id=self.id, function=FunctionCall(self.name, self.arguments))


class ToolCallDeltaAccumulator:
    """Accumulate native function-calling deltas from an SSE stream.

    Calls are keyed by arrival order, not by the provider's ``index``:
    providers stream calls one after another, and a delta carrying an
    ``id`` always opens a new call.  Argument fragments without an ``id``
    belong to the most recently opened call and are concatenated in order.
    """

    def __init__(self) -> None:
        self._calls: list[ToolCallAccumulator] = []

    def feed(self, delta: ToolCallDelta) -> bool:
        """Process one delta.  Returns True when it opened a new call."""
        if delta.id is not None:
            self._calls.append(ToolCallAccumulator(
                delta.id,
                name=delta.function_name or "",
                arguments=delta.function_arguments or "",
            ))
            return True
        if not self._calls:
            _logger.debug("Dropping tool call fragment before any call was opened: %r", delta)
            return False
        if delta.function_arguments:
            self._calls[-1].append_arguments(delta.function_arguments)
        return False

    @property
    def current(self) -> ToolCallAccumulator | None:
        return self._calls[-1] if self._calls else None

    def has_calls(self) -> bool:
        return bool(self._calls)

    def finalize(self) -> list[ToolCall]:
        """Finalize every open call, in arrival order."""
        return [acc.finalize() for acc in self._calls]
