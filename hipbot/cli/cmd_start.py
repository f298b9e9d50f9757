"""Start command."""

import asyncio
import sys

import click

from . import cli
from .shared import console


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--status", "status_text", default=None, help="Override the presence status text")
def start(debug, status_text):
    """Connect and serve conversations until the connection drops."""
    from hipbot.config import load_settings
    from hipbot.main import run, setup_logging

    setup_logging(debug=debug)
    overrides = {"status": status_text} if status_text is not None else {}
    settings = load_settings(**overrides)

    console.print(f"[bold blue]Starting hipbot as {settings.jid}...[/bold blue]")
    exit_code = asyncio.run(run(settings))
    if exit_code:
        console.print("[red]Connection lost. Exiting for restart.[/red]")
    sys.exit(exit_code)
