"""Message router — who is talking, and is it just our own echo?

Private chat: the sender's bare address is the identity.
Group chat: the sender is room@conf/Nickname, so the identity is the one
contact whose display name equals the nickname. No match, or more than one,
means the message cannot be attributed and is dropped.

Anything that resolves to the bot itself is a self-echo. The server echoes
our own group messages back with the original id, which is how outgoing
sends get acknowledged.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from .stanza import Unit
from ..directory import Contact, Directory, SelfProfile
from ..errors import RoutingError

logger = logging.getLogger("hipbot.router")


class RouteKind(enum.Enum):
    CONVERSATION = "conversation"
    SELF_ECHO = "self_echo"
    UNDELIVERABLE = "undeliverable"


@dataclass
class Route:
    kind: RouteKind
    identity: Optional[str] = None      # bare address of the speaker
    contact: Optional[Contact] = None   # directory entry, if known
    error: Optional[RoutingError] = None


class MessageRouter:
    def __init__(self, directory: Directory, profile: SelfProfile):
        self.directory = directory
        self.profile = profile
        # Room occupant names the bot joined under; echoes carry these
        self.own_nicknames: set[str] = set()

    def resolve(self, unit: Unit) -> Route:
        sender = unit.sender
        if sender is None:
            return self._undeliverable(RoutingError(f"Message without sender: {unit!r}"))

        if unit.subtype == "groupchat":
            nickname = sender.resource
            if not nickname:
                # Room subject/system messages come from the bare room address
                return self._undeliverable(RoutingError(f"Group message from {sender} has no nickname"))
            if nickname in self.own_nicknames:
                return Route(RouteKind.SELF_ECHO, self.profile.address)
            matches = self.directory.find_by_name(nickname)
            if len(matches) != 1:
                return self._undeliverable(RoutingError(
                    f"Cannot resolve '{nickname}' in {sender.bare}: {len(matches)} contacts match"
                ))
            contact = matches[0]
            identity = contact.address
        else:
            identity = sender.bare
            contact = self.directory.get(identity)

        if self.profile.address and identity == self.profile.address:
            return Route(RouteKind.SELF_ECHO, identity, contact)
        return Route(RouteKind.CONVERSATION, identity, contact)

    def _undeliverable(self, error: RoutingError) -> Route:
        logger.warning(f"Dropping message: {error}")
        return Route(RouteKind.UNDELIVERABLE, error=error)
