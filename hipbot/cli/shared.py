"""Shared utilities for hipbot CLI commands."""

from rich.console import Console

console = Console()


def mask(value: str | None) -> str:
    """Hide secrets in status output, keep a hint of what is set."""
    if not value:
        return "[dim]not set[/dim]"
    if len(value) <= 4:
        return "****"
    return value[:2] + "****" + value[-2:]
