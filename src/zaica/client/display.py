"""Display strategies for streamed output.

The orchestrator talks to one ``StreamDisplay`` and never branches on
whether output is wanted: silent runs simply get ``SilentDisplay``.
"""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.text import Text


class StreamDisplay(Protocol):
    """Side effects of a streaming completion."""

    def token(self, text: str) -> None:
        """New answer text."""

    def reasoning_start(self) -> None:
        """First reasoning chunk after non-reasoning output."""

    def reasoning(self, text: str) -> None:
        """Reasoning ("thinking") text."""

    def reasoning_end(self) -> None:
        """Answer text follows a reasoning block."""

    def tool_call(self, name: str) -> None:
        """The model opened a tool call."""

    def error(self, message: str) -> None:
        """A terminal error for this completion."""


class SilentDisplay:
    """No-op display for non-interactive runs."""

    def token(self, text: str) -> None:
        pass

    def reasoning_start(self) -> None:
        pass

    def reasoning(self, text: str) -> None:
        pass

    def reasoning_end(self) -> None:
        pass

    def tool_call(self, name: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass


class ConsoleDisplay:
    """Render a stream on a rich console: answer plain, reasoning dimmed."""

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        show_reasoning: bool = True,
    ) -> None:
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)
        self.show_reasoning = show_reasoning

    def token(self, text: str) -> None:
        self.console.print(Text(text), end="")

    def reasoning_start(self) -> None:
        if self.show_reasoning:
            self.console.print(Text("── thinking ──", style="dim"))

    def reasoning(self, text: str) -> None:
        if self.show_reasoning:
            self.console.print(Text(text, style="dim italic"), end="")

    def reasoning_end(self) -> None:
        if self.show_reasoning:
            self.console.print()
            self.console.print(Text("──────────────", style="dim"))

    def tool_call(self, name: str) -> None:
        self.console.print(Text.assemble(("⚙ ", "cyan"), (name, "bold cyan")))

    def error(self, message: str) -> None:
        self.err_console.print(Text(f"Error: {message}", style="red"))
