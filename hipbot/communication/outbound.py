"""Send pipeline — build outgoing units, register their ids, transmit.

Every correlated send returns the future registered for its id:
- messages resolve (with None) when the server echoes them back to us,
- profile queries resolve with the merged Contact once the reply lands.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..correlation import CorrelationRegistry, new_id
from .stanza import (
    PROFILE_ID_PREFIX,
    Unit,
    build_message,
    build_profile_request,
)

logger = logging.getLogger("hipbot.outbound")

Transmit = Callable[[Unit], None]


class SendPipeline:
    def __init__(self, registry: CorrelationRegistry, transmit: Optional[Transmit] = None):
        self.registry = registry
        self._transmit = transmit

    def attach(self, transmit: Transmit):
        """Point the pipeline at a (new) transport."""
        self._transmit = transmit

    def send_unit(self, unit: Unit):
        """Fire-and-forget transmit, no correlation."""
        if self._transmit is None:
            raise RuntimeError("Send pipeline has no transport. Call connect() first.")
        logger.debug(f"Transmit {unit!r}")
        self._transmit(unit)

    def _send_correlated(self, unit_id: str, unit: Unit) -> asyncio.Future:
        future = self.registry.register(unit_id)
        try:
            self.send_unit(unit)
        except Exception:
            self.registry.discard(unit_id)
            raise
        return future

    def send(self, target: str, text: str) -> asyncio.Future:
        """Private chat message to `target` (full or bare address)."""
        unit_id = new_id()
        logger.info(f"Sending chat message {unit_id} to {target}")
        return self._send_correlated(unit_id, build_message(unit_id, str(target), text, "chat"))

    def send_group(self, room: str, text: str) -> asyncio.Future:
        """Group chat message to a room (bare room address)."""
        unit_id = new_id()
        logger.info(f"Sending groupchat message {unit_id} to {room}")
        return self._send_correlated(unit_id, build_message(unit_id, str(room), text, "groupchat"))

    def query_profile(self, address: str) -> asyncio.Future:
        """Ask the server for a contact's HipChat profile."""
        unit_id = new_id(PROFILE_ID_PREFIX)
        logger.debug(f"Profile query {unit_id} for {address}")
        return self._send_correlated(unit_id, build_profile_request(unit_id, str(address)))
