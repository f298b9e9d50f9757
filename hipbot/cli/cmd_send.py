"""Send a single message; for rooms, wait for the server echo."""

import asyncio
import sys

import click

from . import cli
from .shared import console


async def _send(settings, target: str, text: str, group: bool, timeout: float) -> bool:
    from hipbot.connection import ConnectionManager
    from hipbot.dialog import GreetingDialog

    manager = ConnectionManager(settings, GreetingDialog())
    try:
        manager.connect()
        await asyncio.wait_for(manager.listen(), timeout=timeout)
        if not group:
            # Servers do not echo private chats back, nothing to wait for
            manager.send(target, text)
            return True
        manager.join_room(target)
        await asyncio.wait_for(manager.send_group(target, text), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        return False
    finally:
        await manager.stop()


@cli.command()
@click.argument("target")
@click.argument("text")
@click.option("--group", is_flag=True, help="TARGET is a room; wait for delivery confirmation")
@click.option("--timeout", default=15.0, show_default=True, help="Seconds to wait for login and echo")
def send(target, text, group, timeout):
    """Send TEXT to TARGET."""
    from hipbot.config import load_settings
    from hipbot.main import setup_logging

    setup_logging()
    settings = load_settings()
    if asyncio.run(_send(settings, target, text, group, timeout)):
        console.print(f"[green]{'Delivered' if group else 'Sent'} to {target}[/green]")
    else:
        console.print(f"[yellow]No confirmation from {target} within {timeout:g}s[/yellow]")
        sys.exit(1)
