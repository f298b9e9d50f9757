"""hipbot — Main entry point."""

import asyncio
import logging
import os
import signal
from typing import Optional

from .config import HipbotSettings, load_settings
from .connection import ConnectionManager
from .dialog import DialogEngine, GreetingDialog
from .errors import TransportError
from .stores import MemoryStore, PostgresStore, Store

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_log_file = os.path.expanduser("~/hipbot.log")

logger = logging.getLogger("hipbot")


def setup_logging(debug: bool = False):
    """Log to stderr and ~/hipbot.log."""
    logging.basicConfig(
        level=logging.INFO,
        format=_log_format,
        handlers=[
            logging.StreamHandler(),                          # stderr (console)
            logging.FileHandler(_log_file, encoding="utf-8"), # ~/hipbot.log
        ],
    )
    if debug:
        logger.setLevel(logging.DEBUG)
    # slixmpp is chatty at INFO
    logging.getLogger("slixmpp").setLevel(logging.WARNING)


async def _build_stores(settings: HipbotSettings) -> tuple[Store, Store]:
    """Session and user stores for the configured backend."""
    if settings.store_backend == "postgres":
        from .db.connection import init_db
        await init_db(settings.database_url)
        return PostgresStore("session"), PostgresStore("user")
    if settings.store_backend != "memory":
        logger.warning(f"Unknown store backend '{settings.store_backend}', using memory")
    return MemoryStore(), MemoryStore()


async def run(settings: Optional[HipbotSettings] = None, dialog: Optional[DialogEngine] = None) -> int:
    """Main run loop.

    Returns:
        Process exit code: 0 on a clean stop, 1 if the connection was lost.
    """
    settings = settings or load_settings()
    dialog = dialog or GreetingDialog()
    session_store, user_store = await _build_stores(settings)
    manager = ConnectionManager(settings, dialog, session_store, user_store)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(manager.stop()))
        except NotImplementedError:
            pass  # Windows

    exit_code = 0
    try:
        manager.connect()
        await manager.listen()
        logger.info("hipbot is running. Press Ctrl+C to stop.")
        await manager.wait_closed()
    except TransportError as e:
        logger.critical(f"Fatal: {e}")
        exit_code = 1
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}", exc_info=True)
        exit_code = 1
    finally:
        await manager.stop()
        if settings.store_backend == "postgres":
            from .db.connection import close_db
            await close_db()
    return exit_code


def main():
    """Entry point."""
    setup_logging()
    raise SystemExit(asyncio.run(run()))


if __name__ == "__main__":
    main()
