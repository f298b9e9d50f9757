"""hipbot CLI — command line interface."""

import click
from hipbot import __version__


@click.group()
@click.version_option(version=__version__, prog_name="hipbot")
def cli():
    """hipbot — XMPP chat bot for HipChat-style servers"""
    pass


# Import all command modules (registers commands onto cli group)
from . import cmd_start  # noqa: E402, F401
from . import cmd_status  # noqa: E402, F401
from . import cmd_send  # noqa: E402, F401


def main():
    """CLI entry point."""
    import sys
    try:
        cli(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Exit as e:
        sys.exit(e.code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
