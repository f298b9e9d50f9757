"""Dialog engine contract and the bundled sample dialog.

The bot never subclasses a dialog framework: it holds a DialogEngine and
calls dispatch() once per inbound message. The engine answers with at most
one Reply carrying the text to send and the updated state to persist.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger("hipbot.dialog")


@dataclass
class DialogTurn:
    text: str
    address: str                # bare address of the speaker
    sender: str                 # full address the message came from
    is_group: bool = False
    session_state: dict = field(default_factory=dict)
    user_data: dict = field(default_factory=dict)


@dataclass
class Reply:
    text: str
    session_state: dict = field(default_factory=dict)
    user_data: dict = field(default_factory=dict)


class DialogEngine(ABC):
    """Turns a message plus prior state into zero or one reply."""

    @abstractmethod
    async def dispatch(self, turn: DialogTurn) -> Optional[Reply]:
        ...


class GreetingDialog(DialogEngine):
    """Two-step sample conversation.

    First message: greet the contact by directory name (when known) and ask
    what is up. Second message: remember the answer in user data, echo it
    back and start over.
    """

    ASK = "What is up?"

    async def dispatch(self, turn: DialogTurn) -> Optional[Reply]:
        session = dict(turn.session_state)
        user_data = dict(turn.user_data)

        if session.get("dialog") == "/ask":
            user_data["sup"] = turn.text
            return Reply(text=f"so {turn.text}!", session_state={}, user_data=user_data)

        identity = user_data.get("identity") or {}
        name = identity.get("name")
        text = f"Hello {name}! {self.ASK}" if name else self.ASK
        session["dialog"] = "/ask"
        return Reply(text=text, session_state=session, user_data=user_data)
