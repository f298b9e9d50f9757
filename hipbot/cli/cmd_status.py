"""Status command."""

import click

from . import cli
from .shared import console, mask

from rich.table import Table


@cli.command()
def status():
    """Show effective configuration."""
    from hipbot import __version__
    from hipbot.config import load_settings

    settings = load_settings()

    table = Table(title=f"hipbot v{__version__}", show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row("JID", settings.jid or "[red]not set[/red]")
    table.add_row("Password", mask(settings.password))
    table.add_row("Server", f"{settings.host or 'SRV lookup'}:{settings.port}")
    table.add_row("Chat host", settings.chat_host)
    table.add_row("Conference host", settings.conference_host)
    table.add_row("Status text", settings.status or "[dim]empty[/dim]")
    table.add_row("Rooms", ", ".join(settings.rooms) or "[dim]none[/dim]")
    table.add_row("Accept invites", "yes" if settings.accept_invites else "no")
    table.add_row("Group replies", "in room" if settings.group_reply_to_room else "private to speaker")
    table.add_row("Keepalive", f"{settings.keepalive_interval:g}s")
    timeout = settings.correlation_timeout
    table.add_row("Reply timeout", f"{timeout:g}s" if timeout is not None else "none")
    table.add_row("Reset directory on reconnect", "yes" if settings.reset_directory_on_reconnect else "no")
    table.add_row("Fetch profiles", "yes" if settings.fetch_profiles else "no")
    table.add_row("Store backend", settings.store_backend)
    if settings.store_backend == "postgres":
        table.add_row("Database", mask(settings.database_url))

    console.print(table)
