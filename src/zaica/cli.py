"""Command-line entry point: one streamed completion per invocation."""

from __future__ import annotations

import json
import logging
import signal
import sys

import click
from rich.console import Console
from rich.text import Text

from zaica import __version__
from zaica.client import CancelFlag, CompletionClient, ConsoleDisplay, StreamError
from zaica.config import ConfigError, load_config

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def _setup_logging(level: str, verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING))


@click.command()
@click.argument("prompt", required=False)
@click.option("--config", "-c", "config_path", default=None,
              help="Path to zaica.yaml (auto-detected from CWD or ~/.config/zaica/)")
@click.option("--provider", "-p", default=None, help="Provider preset (glm, openai, deepseek, ollama)")
@click.option("--model", "-m", default=None, help="Model name (defaults to the provider's)")
@click.option("--temperature", type=float, default=None, help="Sampling temperature")
@click.option("--max-tokens", type=int, default=None, help="Maximum output tokens")
@click.option("--api-key", default=None, help="API key (overrides environment)")
@click.option("--dump-config", is_flag=True, help="Print the resolved configuration and exit")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.version_option(__version__, prog_name="zaica")
def main(prompt: str | None, config_path: str | None, provider: str | None,
         model: str | None, temperature: float | None, max_tokens: int | None,
         api_key: str | None, dump_config: bool, verbose: bool):
    """zaica - stream a completion from an OpenAI-compatible provider."""
    try:
        resolved = load_config(config_path, overrides={
            "provider": provider,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "api_key": api_key,
        })
    except ConfigError as e:
        err_console.print(Text(str(e), style="red"))
        sys.exit(1)

    _setup_logging(resolved.config.log_level, verbose)

    if dump_config:
        console.print_json(json.dumps(resolved.redacted()))
        return

    if prompt is None and not sys.stdin.isatty():
        prompt = sys.stdin.read().strip()
    if not prompt:
        err_console.print("[red]No prompt given.[/red]")
        sys.exit(1)

    cancel = CancelFlag()
    previous = signal.signal(signal.SIGINT, lambda *_: cancel.set())
    display = ConsoleDisplay(console=console, err_console=err_console)
    try:
        with CompletionClient(resolved) as client:
            result = client.chat(prompt, display=display, should_cancel=cancel.is_set)
    except StreamError:
        # Already reported on the error channel by the display
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous)

    console.print()
    if result.cancelled:
        console.print("[yellow]Cancelled.[/yellow]")
    if result.usage is not None:
        u = result.usage
        console.print(
            f"[dim]tokens: {u.prompt_tokens} in / {u.completion_tokens} out"
            f" / {u.total_tokens} total[/dim]"
        )


if __name__ == "__main__":
    main()
