"""Protocol units — a thin read-only view over a parsed stanza, plus builders.

XML parsing itself is done by slixmpp (or ElementTree in tests); this module
only reads the resulting element tree. Child lookups match on local name so
callers never have to spell namespaces.
"""

from typing import Optional
from xml.etree import ElementTree as ET

from slixmpp.jid import JID

NS_CLIENT = "jabber:client"
NS_VCARD = "vcard-temp"
NS_ROSTER = "jabber:iq:roster"
NS_PROFILE = "http://hipchat.com/protocol/profile"
NS_MUC = "http://jabber.org/protocol/muc"
NS_MUC_USER = "http://jabber.org/protocol/muc#user"
NS_DELAY = "urn:xmpp:delay"

PROFILE_ID_PREFIX = "profile:"


def split_tag(tag: str) -> tuple[Optional[str], str]:
    """'{ns}name' -> ('ns', 'name'); 'name' -> (None, 'name')."""
    if tag.startswith("{"):
        ns, _, local = tag[1:].partition("}")
        return ns, local
    return None, tag


class Unit:
    """One inbound or outbound protocol unit (iq / message / presence)."""

    def __init__(self, xml: ET.Element):
        self.xml = xml

    @classmethod
    def from_string(cls, text: str) -> "Unit":
        return cls(ET.fromstring(text))

    @property
    def category(self) -> str:
        return split_tag(self.xml.tag)[1]

    @property
    def subtype(self) -> Optional[str]:
        return self.xml.get("type")

    @property
    def id(self) -> Optional[str]:
        return self.xml.get("id")

    @property
    def sender(self) -> Optional[JID]:
        value = self.xml.get("from")
        return JID(value) if value else None

    @property
    def recipient(self) -> Optional[JID]:
        value = self.xml.get("to")
        return JID(value) if value else None

    def child(self, name: str, ns: Optional[str] = None) -> Optional["Element"]:
        return Element(self.xml).child(name, ns)

    def children(self, name: str, ns: Optional[str] = None) -> list["Element"]:
        return Element(self.xml).children(name, ns)

    @property
    def body(self) -> Optional[str]:
        body = self.child("body")
        return body.text if body is not None else None

    def to_string(self) -> str:
        return ET.tostring(self.xml, encoding="unicode")

    def __repr__(self) -> str:
        return f"<Unit {self.category} type={self.subtype} id={self.id} from={self.xml.get('from')}>"


class Element:
    """Named child element with attributes and text content."""

    def __init__(self, xml: ET.Element):
        self.xml = xml

    @property
    def name(self) -> str:
        return split_tag(self.xml.tag)[1]

    @property
    def namespace(self) -> Optional[str]:
        return split_tag(self.xml.tag)[0]

    @property
    def text(self) -> str:
        return self.xml.text or ""

    @property
    def attrs(self) -> dict:
        return dict(self.xml.attrib)

    def get(self, attr: str, default=None):
        return self.xml.get(attr, default)

    def _matches(self, el: ET.Element, name: str, ns: Optional[str]) -> bool:
        el_ns, el_name = split_tag(el.tag)
        return el_name == name and (ns is None or el_ns == ns)

    def child(self, name: str, ns: Optional[str] = None) -> Optional["Element"]:
        for el in self.xml:
            if self._matches(el, name, ns):
                return Element(el)
        return None

    def children(self, name: Optional[str] = None, ns: Optional[str] = None) -> list["Element"]:
        return [Element(el) for el in self.xml if name is None or self._matches(el, name, ns)]

    def child_text(self, name: str) -> Optional[str]:
        el = self.child(name)
        return el.text if el is not None else None


# ============================================================
# BUILDERS
# ============================================================

def _el(name: str, ns: str = NS_CLIENT, **attrs) -> ET.Element:
    return ET.Element(f"{{{ns}}}{name}", {k: str(v) for k, v in attrs.items() if v is not None})


def _sub(parent: ET.Element, name: str, ns: str = NS_CLIENT, text: Optional[str] = None, **attrs) -> ET.Element:
    child = ET.SubElement(parent, f"{{{ns}}}{name}", {k: str(v) for k, v in attrs.items() if v is not None})
    if text is not None:
        child.text = text
    return child


def build_vcard_request(unit_id: Optional[str] = None) -> Unit:
    iq = _el("iq", type="get", id=unit_id)
    _sub(iq, "vCard", NS_VCARD)
    return Unit(iq)


def build_roster_request(unit_id: Optional[str] = None) -> Unit:
    iq = _el("iq", type="get", id=unit_id)
    _sub(iq, "query", NS_ROSTER)
    return Unit(iq)


def build_profile_request(unit_id: str, target: str) -> Unit:
    iq = _el("iq", type="get", id=unit_id, to=target)
    _sub(iq, "query", NS_PROFILE)
    return Unit(iq)


def build_presence(status: str = "", show: str = "chat") -> Unit:
    presence = _el("presence")
    _sub(presence, "show", text=show)
    _sub(presence, "status", text=status or "")
    return Unit(presence)


def build_room_join(room_occupant: str) -> Unit:
    """Presence to room@conf/nick, announcing MUC support. No history replay."""
    presence = _el("presence", to=room_occupant)
    x = _sub(presence, "x", NS_MUC)
    _sub(x, "history", NS_MUC, maxstanzas=0)
    return Unit(presence)


def build_message(unit_id: str, to: str, text: str, subtype: str = "chat") -> Unit:
    message = _el("message", type=subtype, id=unit_id, to=to)
    _sub(message, "body", text=text)
    return Unit(message)


def build_keepalive() -> Unit:
    """Empty message — a no-op on the server, keeps NAT/proxies awake."""
    return Unit(_el("message"))
