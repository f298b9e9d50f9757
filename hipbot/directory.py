"""Directory — in-memory cache of contacts merged from roster, profile and presence.

Keys are always bare addresses. Each source of information owns a fixed set
of fields, and a merge only ever writes the fields it was given:

- roster items:    name, mention_name
- profile replies: name, mention_name, timezone
- presence:        presence

Nothing is ever cleared or deleted; contacts live for the process lifetime
(unless the owner explicitly calls clear()).
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Iterator, Optional

from slixmpp.jid import JID

logger = logging.getLogger("hipbot.directory")


def bare_address(address) -> str:
    """Strip the resource from an address: 'a@x/phone' -> 'a@x'."""
    return JID(str(address)).bare


@dataclass
class Contact:
    address: str                        # bare JID, identity key
    name: Optional[str] = None          # display name
    mention_name: Optional[str] = None  # name used to @mention this user
    timezone: Optional[float] = None    # UTC offset in hours
    presence: Optional[str] = None      # available/away/xa/dnd/chat/unavailable
    is_self: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SelfProfile:
    """The bot's own identity, filled from the self vCard reply."""
    address: Optional[str] = None
    name: Optional[str] = None
    mention_name: Optional[str] = None
    fields: dict = field(default_factory=dict)

    @property
    def loaded(self) -> bool:
        return self.address is not None


class Directory:
    """Mapping from bare address to Contact with field-scoped merges."""

    def __init__(self):
        self._contacts: dict[str, Contact] = {}

    def upsert(self, address, **fields) -> Contact:
        """Merge the given fields into the contact, creating it if absent.

        Fields passed as None are treated as not provided.
        """
        key = bare_address(address)
        contact = self._contacts.get(key)
        if contact is None:
            contact = Contact(address=key)
            self._contacts[key] = contact
            logger.debug(f"New contact: {key}")

        for name, value in fields.items():
            if name == "address" or not hasattr(contact, name):
                raise AttributeError(f"Contact has no mergeable field '{name}'")
            if value is not None:
                setattr(contact, name, value)
        return contact

    def merge_roster_item(self, address, name: Optional[str], mention_name: Optional[str]) -> Contact:
        return self.upsert(address, name=name, mention_name=mention_name)

    def merge_profile(
        self,
        address,
        name: Optional[str],
        mention_name: Optional[str],
        timezone: Optional[float],
    ) -> Contact:
        return self.upsert(address, name=name, mention_name=mention_name, timezone=timezone)

    def merge_presence(self, address, presence: str) -> Contact:
        return self.upsert(address, presence=presence)

    def get(self, address) -> Optional[Contact]:
        return self._contacts.get(bare_address(address))

    def find_by_name(self, name: str) -> list[Contact]:
        """All contacts whose display name is exactly `name`."""
        return [c for c in self._contacts.values() if c.name == name]

    def clear(self):
        self._contacts.clear()
        logger.info("Directory cleared")

    def __len__(self) -> int:
        return len(self._contacts)

    def __contains__(self, address) -> bool:
        return bare_address(address) in self._contacts

    def __iter__(self) -> Iterator[Contact]:
        return iter(list(self._contacts.values()))
