"""Transport — the already-authenticated connection the bot talks through.

The core only needs four things from a transport: tell me when you are
online, hand me every inbound unit in order, tell me when you are gone,
and send this unit. Sockets, TLS, SASL and XML stream parsing all live in
slixmpp behind XMPPTransport.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from slixmpp import ClientXMPP
from slixmpp.xmlstream.handler import Callback
from slixmpp.xmlstream.matcher import MatchXPath

from .communication.stanza import Unit

logger = logging.getLogger("hipbot.transport")

OnOnline = Callable[[], None]
OnUnit = Callable[[Unit], None]
OnLost = Callable[[str], None]


class Transport(ABC):
    """Abstract single connection."""

    def __init__(self):
        self.on_online: Optional[OnOnline] = None
        self.on_unit: Optional[OnUnit] = None
        self.on_lost: Optional[OnLost] = None

    def bind(self, on_online: OnOnline, on_unit: OnUnit, on_lost: OnLost):
        self.on_online = on_online
        self.on_unit = on_unit
        self.on_lost = on_lost

    @abstractmethod
    def start(self):
        """Begin connecting. on_online fires once the session is up."""
        ...

    @abstractmethod
    def send(self, unit: Unit):
        ...

    @abstractmethod
    async def close(self):
        ...

    @property
    def address(self) -> Optional[str]:
        """Own full address once bound, if known."""
        return None


class XMPPTransport(Transport):
    """slixmpp-backed transport. Every top-level stanza is forwarded raw."""

    def __init__(self, jid: str, password: str, host: Optional[str] = None, port: int = 5222):
        super().__init__()
        self.host = host
        self.port = port
        self._closing = False
        self.client = ClientXMPP(jid, password)
        self.client.register_plugin("xep_0199")  # answer server pings

        self.client.add_event_handler("session_start", self._on_session_start)
        self.client.add_event_handler("disconnected", self._on_disconnected)
        self.client.add_event_handler("failed_auth", self._on_failed_auth)

        ns = self.client.default_ns
        for name in ("iq", "message", "presence"):
            self.client.register_handler(Callback(
                f"hipbot {name}",
                MatchXPath(f"{{{ns}}}{name}"),
                self._on_stanza,
            ))

    def start(self):
        logger.info(f"Connecting as {self.client.boundjid.bare} ({self.host or 'SRV lookup'})...")
        if self.host:
            self.client.connect(host=self.host, port=self.port)
        else:
            self.client.connect()

    def send(self, unit: Unit):
        self.client.send_xml(unit.xml)

    async def close(self):
        self._closing = True
        try:
            await asyncio.wait_for(self.client.disconnect(wait=2.0), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for the server to close the stream")

    @property
    def address(self) -> Optional[str]:
        return str(self.client.boundjid)

    def _on_stanza(self, stanza):
        if self.on_unit:
            self.on_unit(Unit(stanza.xml))

    def _on_session_start(self, event):
        logger.info(f"Online as {self.client.boundjid}")
        if self.on_online:
            self.on_online()

    def _on_disconnected(self, reason):
        if self._closing:
            logger.info("Disconnected")
            return
        if self.on_lost:
            self.on_lost(str(reason) if reason else "connection closed by server")

    def _on_failed_auth(self, event):
        logger.critical("Authentication failed! Check HIPBOT_JID/HIPBOT_PASSWORD.")
        if self.on_lost:
            self.on_lost("authentication failed")
        self.client.abort()
