"""Stanza dispatcher — run each inbound unit through the ordered handler chain.

First handler to report True wins; nothing after it sees the unit. A
handler that recognises its unit but cannot parse it still counts as having
handled it, so the unit is never picked up twice.

Classification is synchronous: the transport calls classify() once per
unit, in arrival order, on the event loop thread.
"""

import logging
from typing import Callable, Optional

from slixmpp.jid import InvalidJID

from ..errors import ParseError
from .handlers import (
    HandlerContext,
    handle_invite,
    handle_message,
    handle_presence,
    handle_profile_reply,
    handle_roster,
    handle_self_vcard,
)
from .stanza import Unit

logger = logging.getLogger("hipbot.dispatcher")

Handler = Callable[[HandlerContext, Unit], bool]

# Highest priority first
DEFAULT_HANDLERS: list[tuple[str, Handler]] = [
    ("self_vcard", handle_self_vcard),
    ("profile_reply", handle_profile_reply),
    ("roster", handle_roster),
    ("presence", handle_presence),
    ("message", handle_message),
    ("invite", handle_invite),
]


class StanzaDispatcher:
    def __init__(
        self,
        context: HandlerContext,
        handlers: Optional[list[tuple[str, Handler]]] = None,
    ):
        self.context = context
        self.handlers = list(handlers if handlers is not None else DEFAULT_HANDLERS)

    def classify(self, unit: Unit) -> bool:
        """Hand `unit` to the first handler that accepts it.

        Returns:
            True if some handler consumed the unit (even if it failed to parse).
        """
        for name, handler in self.handlers:
            try:
                handled = handler(self.context, unit)
            except InvalidJID as e:
                self.context.report(ParseError(f"{name}: invalid address: {e}"), unit)
                return True
            except ParseError as e:
                self.context.report(e, unit)
                return True
            if handled:
                logger.debug(f"{unit!r} handled by {name}")
                return True

        logger.debug(f"Unhandled {unit!r}")
        return False
