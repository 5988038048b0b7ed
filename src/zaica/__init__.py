"""zaica: streaming completion engine for an LLM coding-assistant CLI."""

__version__ = "0.3.0"
