"""Inbound handlers — one per kind of unit the bot understands.

Each handler has the signature `handler(ctx, unit) -> bool`:
- return False when the unit is not its kind (category/subtype/child mismatch),
- return True once it has consumed the unit,
- raise ParseError when the unit is its kind but the expected children are
  missing or malformed. Handlers parse everything before touching state, so
  a ParseError never leaves a half-applied update behind.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from slixmpp.jid import InvalidJID, JID

from ..correlation import CorrelationRegistry
from ..directory import Contact, Directory, SelfProfile
from ..errors import HipbotError, ParseError
from .router import MessageRouter, Route, RouteKind
from .stanza import (
    NS_DELAY,
    NS_MUC_USER,
    NS_PROFILE,
    NS_ROSTER,
    NS_VCARD,
    PROFILE_ID_PREFIX,
    Unit,
)

logger = logging.getLogger("hipbot.handlers")


@dataclass
class HandlerContext:
    """State and callbacks shared by the handler chain."""
    directory: Directory
    profile: SelfProfile
    registry: CorrelationRegistry
    router: MessageRouter
    on_conversation: Optional[Callable[[Unit, Route], None]] = None
    on_invite: Optional[Callable[[str, Optional[str], Optional[str]], None]] = None
    on_roster: Optional[Callable[[list[Contact]], None]] = None
    on_self_profile: Optional[Callable[[SelfProfile], None]] = None
    on_error: Optional[Callable[[HipbotError, Unit], None]] = None

    def report(self, error: HipbotError, unit: Unit):
        """Recoverable-error signal: log it and notify the listener."""
        logger.warning(f"{type(error).__name__}: {error} ({unit!r})")
        if self.on_error:
            self.on_error(error, unit)


def _bare(value: str, what: str) -> str:
    try:
        jid = JID(value)
    except InvalidJID as e:
        raise ParseError(f"Invalid {what} address '{value}': {e}") from e
    if not jid.bare:
        raise ParseError(f"Empty {what} address")
    return jid.bare


# ============================================================
# INFO-QUERY
# ============================================================

def handle_self_vcard(ctx: HandlerContext, unit: Unit) -> bool:
    """Own vCard, requested once right after going online."""
    if unit.category != "iq" or unit.subtype != "result":
        return False
    vcard = unit.child("vCard", NS_VCARD)
    if vcard is None:
        return False

    fields = {f.name: f.text for f in vcard.children()}
    own = fields.get("JABBERID") or unit.xml.get("from") or unit.xml.get("to")
    if not own:
        raise ParseError("vCard reply carries no address for the bot")
    address = _bare(own, "vCard")

    ctx.profile.address = address
    ctx.profile.name = fields.get("FN") or None
    ctx.profile.mention_name = fields.get("NICKNAME") or None
    ctx.profile.fields = fields
    ctx.directory.upsert(
        address,
        name=ctx.profile.name,
        mention_name=ctx.profile.mention_name,
        is_self=True,
    )
    logger.info(f"Self profile loaded: {address} ({ctx.profile.name})")
    if ctx.on_self_profile:
        ctx.on_self_profile(ctx.profile)
    return True


def handle_profile_reply(ctx: HandlerContext, unit: Unit) -> bool:
    """Reply to a profile query we sent with a `profile:` id."""
    if unit.category != "iq" or not (unit.id or "").startswith(PROFILE_ID_PREFIX):
        return False
    if unit.subtype == "error":
        raise ParseError(f"Profile query {unit.id} returned an error")

    query = unit.child("query", NS_PROFILE) or unit.child("query")
    if query is None:
        raise ParseError(f"Profile reply {unit.id} has no query element")
    if unit.sender is None:
        raise ParseError(f"Profile reply {unit.id} has no sender")
    address = _bare(str(unit.sender), "profile")

    timezone = None
    tz = query.child("timezone")
    if tz is not None and tz.get("utc_offset") is not None:
        try:
            timezone = float(tz.get("utc_offset"))
        except ValueError as e:
            raise ParseError(f"Bad utc_offset '{tz.get('utc_offset')}' in {unit.id}") from e

    contact = ctx.directory.merge_profile(
        address,
        name=query.child_text("name") or None,
        mention_name=query.child_text("mention_name") or None,
        timezone=timezone,
    )
    ctx.registry.resolve(unit.id, contact)
    return True


def handle_roster(ctx: HandlerContext, unit: Unit) -> bool:
    """Buddy list: one item per contact with jid, name and mention_name."""
    if unit.category != "iq" or unit.subtype not in ("result", "set"):
        return False
    query = unit.child("query", NS_ROSTER)
    if query is None:
        return False

    items = []
    for item in query.children("item"):
        jid = item.get("jid")
        if not jid:
            raise ParseError("Roster item without jid")
        items.append((_bare(jid, "roster"), item.get("name"), item.get("mention_name")))

    contacts = [ctx.directory.merge_roster_item(a, name, mention) for a, name, mention in items]
    logger.info(f"Roster loaded: {len(contacts)} contacts")
    if ctx.on_roster:
        ctx.on_roster(contacts)
    return True


# ============================================================
# PRESENCE
# ============================================================

_PRESENCE_TYPES = (None, "available", "unavailable")


def handle_presence(ctx: HandlerContext, unit: Unit) -> bool:
    """Availability of a contact. Subscription and room presences are not ours."""
    if unit.category != "presence" or unit.subtype not in _PRESENCE_TYPES:
        return False
    if unit.child("x", NS_MUC_USER) is not None or unit.sender is None:
        return False

    if unit.subtype == "unavailable":
        value = "unavailable"
    else:
        show = unit.child("show")
        value = show.text.strip() if show is not None and show.text.strip() else "available"

    ctx.directory.merge_presence(unit.sender.bare, value)
    logger.debug(f"Presence: {unit.sender.bare} is {value}")
    return True


# ============================================================
# MESSAGES
# ============================================================

def handle_message(ctx: HandlerContext, unit: Unit) -> bool:
    """Chat or group chat with a body. Bodyless messages are typing notices."""
    if unit.category != "message" or unit.subtype not in ("chat", "groupchat"):
        return False
    if not unit.body:
        return False

    if unit.child("delay", NS_DELAY) is not None:
        # Replayed history: only our own echoes still matter
        if ctx.registry.resolve(unit.id):
            logger.debug(f"Delivery confirmed for {unit.id} (delayed)")
        else:
            logger.debug(f"Skipping delayed {unit!r}")
        return True

    route = ctx.router.resolve(unit)
    if route.kind is RouteKind.SELF_ECHO:
        if ctx.registry.resolve(unit.id):
            logger.debug(f"Delivery confirmed for {unit.id}")
    elif route.kind is RouteKind.UNDELIVERABLE:
        if ctx.on_error and route.error:
            ctx.on_error(route.error, unit)
    elif ctx.on_conversation:
        ctx.on_conversation(unit, route)
    return True


def handle_invite(ctx: HandlerContext, unit: Unit) -> bool:
    """Room invitation: <x xmlns='...muc#user'><invite from='...'/></x>."""
    if unit.category != "message":
        return False
    x = unit.child("x", NS_MUC_USER)
    invite = x.child("invite") if x is not None else None
    if invite is None:
        return False
    if unit.sender is None:
        raise ParseError("Room invite without a room address")

    room = _bare(str(unit.sender), "room")
    inviter = invite.get("from")
    reason = invite.child_text("reason")
    logger.info(f"Invited to {room} by {inviter or 'unknown'}")
    if ctx.on_invite:
        ctx.on_invite(room, inviter, reason)
    return True
