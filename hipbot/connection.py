"""Connection manager — owns the transport and all per-connection state.

Lifecycle:
    manager = ConnectionManager(settings, dialog)
    manager.connect()
    await manager.listen()        # resolves once online
    await manager.wait_closed()   # raises TransportError if the link drops
    await manager.stop()

Losing the connection is fatal by design: there is no reconnect or backoff
here. run() exits non-zero and the process supervisor restarts the bot.
"""

import asyncio
import logging
from typing import Optional

from .communication.dispatcher import StanzaDispatcher
from .communication.handlers import HandlerContext
from .communication.outbound import SendPipeline
from .communication.router import MessageRouter, Route
from .communication.stanza import (
    Unit,
    build_keepalive,
    build_presence,
    build_roster_request,
    build_room_join,
    build_vcard_request,
)
from .config import HipbotSettings
from .correlation import CorrelationRegistry, new_id
from .dialog import DialogEngine
from .directory import Contact, Directory, SelfProfile
from .errors import HipbotError, TransportError
from .session import AdmitPredicate, SessionBridge
from .stores import MemoryStore, Store
from .transport import Transport, XMPPTransport

logger = logging.getLogger("hipbot.connection")


class ConnectionManager:
    def __init__(
        self,
        settings: HipbotSettings,
        dialog: DialogEngine,
        session_store: Optional[Store] = None,
        user_store: Optional[Store] = None,
        transport: Optional[Transport] = None,
        admit: Optional[AdmitPredicate] = None,
    ):
        self.settings = settings
        self.transport = transport

        self.directory = Directory()
        self.profile = SelfProfile()
        self.registry = CorrelationRegistry(timeout=settings.correlation_timeout)
        self.pipeline = SendPipeline(self.registry)
        self.router = MessageRouter(self.directory, self.profile)
        self.bridge = SessionBridge(
            dialog,
            session_store or MemoryStore(),
            user_store or MemoryStore(),
            self.directory,
            self.pipeline,
            admit=admit,
            reply_to_room=settings.group_reply_to_room,
        )
        self.dispatcher = StanzaDispatcher(HandlerContext(
            directory=self.directory,
            profile=self.profile,
            registry=self.registry,
            router=self.router,
            on_conversation=self._on_conversation,
            on_invite=self._on_invite,
            on_roster=self._on_roster,
            on_self_profile=self._on_self_profile,
            on_error=self._on_recoverable_error,
        ))

        self.rooms: set[str] = set()
        self._online: Optional[asyncio.Future] = None
        self._closed: Optional[asyncio.Future] = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._conversations: set[asyncio.Task] = set()
        self._online_count = 0
        self.error_counts: dict[str, int] = {}
        self._stopped = False
        self._running = False

    # ── Lifecycle ─────────────────────────────────────────────

    def connect(self) -> Transport:
        """Build (unless injected) and start the transport."""
        loop = asyncio.get_running_loop()
        self._online = loop.create_future()
        self._closed = loop.create_future()

        if self.transport is None:
            self.transport = XMPPTransport(
                self.settings.jid,
                self.settings.password,
                host=self.settings.host,
                port=self.settings.port,
            )
        self.transport.bind(self._on_online, self.on_unit, self._on_lost)
        self.pipeline.attach(self.transport.send)
        self._running = True
        self.transport.start()
        return self.transport

    def listen(self) -> asyncio.Future:
        """Future resolved when the transport reports online."""
        if self._online is None:
            raise RuntimeError("Not connected. Call connect() first.")
        return self._online

    async def wait_closed(self):
        """Block until the connection ends; raises TransportError if it was lost."""
        if self._closed is None:
            raise RuntimeError("Not connected. Call connect() first.")
        await self._closed

    async def stop(self):
        """Stop accepting units and close the transport.

        In-flight conversations and pending correlations are left alone.
        """
        if self._stopped:
            return
        self._stopped = True
        self._running = False
        await self._stop_keepalive()
        if self.transport:
            await self.transport.close()
        if self._closed and not self._closed.done():
            self._closed.set_result(None)
        logger.info(f"Stopped ({len(self._conversations)} conversations still in flight)")

    @property
    def is_online(self) -> bool:
        return self._running and self._online is not None and self._online.done()

    # ── Transport callbacks ──────────────────────────────────

    def _on_online(self):
        self._online_count += 1
        if self._online_count > 1 and self.settings.reset_directory_on_reconnect:
            self.directory.clear()

        self.pipeline.send_unit(build_vcard_request(new_id()))
        self.pipeline.send_unit(build_roster_request(new_id()))
        self.pipeline.send_unit(build_presence(self.settings.status))
        # Without a configured nickname, rooms wait for the vCard name
        if self.settings.nickname:
            self._join_configured_rooms()

        if self._keepalive_task is None or self._keepalive_task.done():
            self._keepalive_task = asyncio.create_task(self._keepalive_loop())

        if self._online and not self._online.done():
            self._online.set_result(True)
        logger.info("Handshake sent (vCard, roster, presence)")

    def on_unit(self, unit: Unit) -> bool:
        """Classify one inbound unit. Called in arrival order."""
        if not self._running:
            logger.debug(f"Stopped, ignoring {unit!r}")
            return False
        return self.dispatcher.classify(unit)

    def _on_lost(self, reason: str):
        if not self._running:
            return
        self._running = False
        error = TransportError(f"Connection lost: {reason}")
        logger.critical(f"{error}. Exiting, restart is up to the process supervisor.")
        if self._keepalive_task:
            self._keepalive_task.cancel()
        if self._online and not self._online.done():
            self._online.set_exception(error)
        if self._closed and not self._closed.done():
            self._closed.set_exception(error)

    # ── Keepalive ─────────────────────────────────────────────

    async def _keepalive_loop(self):
        interval = self.settings.keepalive_interval
        while True:
            await asyncio.sleep(interval)
            try:
                self.pipeline.send_unit(build_keepalive())
            except Exception as e:
                logger.error(f"Keepalive failed: {e}", exc_info=True)

    async def _stop_keepalive(self):
        task, self._keepalive_task = self._keepalive_task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── Handler callbacks ─────────────────────────────────────

    def _on_conversation(self, unit: Unit, route: Route):
        task = asyncio.create_task(self.bridge.handle(unit, route))
        self._conversations.add(task)
        task.add_done_callback(self._conversation_done)

    def _conversation_done(self, task: asyncio.Task):
        self._conversations.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Conversation failed: {type(error).__name__}: {error}", exc_info=error)

    def _on_invite(self, room: str, inviter: Optional[str], reason: Optional[str]):
        if self.settings.accept_invites:
            self.join_room(room)
        else:
            logger.info(f"Ignoring invite to {room} (accept_invites is off)")

    def _on_roster(self, contacts: list[Contact]):
        if not self.settings.fetch_profiles:
            return
        for contact in contacts:
            future = self.pipeline.query_profile(contact.address)
            future.add_done_callback(_log_profile_failure)

    def _on_self_profile(self, profile: SelfProfile):
        if not self.settings.nickname:
            self._join_configured_rooms()

    def _join_configured_rooms(self):
        for room in self.settings.rooms:
            self.join_room(room)

    def _on_recoverable_error(self, error: HipbotError, unit: Unit):
        self.error_counts[type(error).__name__] = self.error_counts.get(type(error).__name__, 0) + 1

    # ── Operations ────────────────────────────────────────────

    def join_room(self, room: str):
        """Enter a room using the vCard name (or configured nickname).

        A bare room name is qualified with the conference host.
        """
        room = _qualify(room, self.settings.conference_host)
        nickname = self.settings.nickname or self.profile.name
        if not nickname:
            # vCard not back yet; the bot's JID node is a stable fallback
            nickname = (self.settings.jid or "hipbot").split("@", 1)[0]
        self.router.own_nicknames.add(nickname)
        self.pipeline.send_unit(build_room_join(f"{room}/{nickname}"))
        self.rooms.add(room)
        logger.info(f"Joining {room} as {nickname}")

    def send(self, target: str, text: str) -> asyncio.Future:
        """Private message. A bare user name is qualified with the chat host."""
        return self.pipeline.send(_qualify(target, self.settings.chat_host), text)

    def send_group(self, room: str, text: str) -> asyncio.Future:
        return self.pipeline.send_group(_qualify(room, self.settings.conference_host), text)

    def query_profile(self, address: str) -> asyncio.Future:
        return self.pipeline.query_profile(_qualify(address, self.settings.chat_host))


def _qualify(address: str, host: str) -> str:
    """'lobby' -> 'lobby@host'; anything with a domain is left alone."""
    return address if "@" in address else f"{address}@{host}"


def _log_profile_failure(future: asyncio.Future):
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning(f"Profile query failed: {error}")
