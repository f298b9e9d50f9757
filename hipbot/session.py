"""Session bridge — load state, run the dialog, save state, send the reply.

One call to handle() is one conversational turn for one contact. Turns for
the same contact are NOT serialized: two quick messages from one person can
interleave their load/dispatch/save cycles and the last save wins.
"""

import asyncio
import logging
from typing import Callable, Optional

from .communication.outbound import SendPipeline
from .communication.router import Route
from .communication.stanza import Unit
from .dialog import DialogEngine, DialogTurn
from .directory import Directory
from .errors import StoreError
from .stores import Store

logger = logging.getLogger("hipbot.session")

AdmitPredicate = Callable[[dict, str], bool]


def admit_all(session_state: dict, message: str) -> bool:
    return True


class SessionBridge:
    def __init__(
        self,
        dialog: DialogEngine,
        session_store: Store,
        user_store: Store,
        directory: Directory,
        pipeline: SendPipeline,
        admit: Optional[AdmitPredicate] = None,
        reply_to_room: bool = False,
    ):
        """
        Args:
            dialog: Engine producing replies.
            session_store: Dialog session state, keyed by bare address.
            user_store: Per-user data, keyed by bare address.
            directory: Source of the `identity` injected into user data.
            pipeline: Where replies go.
            admit: Group chat gate `(session_state, text) -> bool`.
                Private chats are always admitted.
            reply_to_room: Answer group turns in the room itself rather
                than privately to the speaker's room occupant address.
        """
        self.dialog = dialog
        self.session_store = session_store
        self.user_store = user_store
        self.directory = directory
        self.pipeline = pipeline
        self.admit = admit or admit_all
        self.reply_to_room = reply_to_room

    async def handle(self, unit: Unit, route: Route) -> Optional[asyncio.Future]:
        """Run one turn.

        Returns:
            The delivery future of the reply, or None when nothing was sent.

        Raises:
            StoreError: if loading or saving state failed.
        """
        key = route.identity
        text = unit.body
        is_group = unit.subtype == "groupchat"

        session_state, user_data = await self._load(key)
        session_state = session_state or {}
        user_data = user_data or {}
        contact = self.directory.get(key)
        user_data["identity"] = contact.to_dict() if contact else None

        if is_group and not self.admit(session_state, text):
            logger.debug(f"Group message from {key} not admitted")
            return None

        logger.info(f"Dispatching message from {key} ({'group' if is_group else 'private'})")
        reply = await self.dialog.dispatch(DialogTurn(
            text=text,
            address=key,
            sender=str(unit.sender),
            is_group=is_group,
            session_state=session_state,
            user_data=user_data,
        ))
        if reply is None:
            logger.debug(f"No reply for {key}")
            return None

        await self._save(key, reply.session_state, reply.user_data)

        if is_group and self.reply_to_room:
            return self.pipeline.send_group(unit.sender.bare, reply.text)
        return self.pipeline.send(str(unit.sender), reply.text)

    async def _load(self, key: str) -> tuple[Optional[dict], Optional[dict]]:
        try:
            return await asyncio.gather(
                self.session_store.get(key),
                self.user_store.get(key),
            )
        except Exception as e:
            raise StoreError(f"Failed to load state for {key}: {e}") from e

    async def _save(self, key: str, session_state: dict, user_data: dict):
        # Let both writes finish before reporting either failure
        results = await asyncio.gather(
            self.session_store.save(key, session_state),
            self.user_store.save(key, user_data),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                raise StoreError(f"Failed to save state for {key}: {result}") from result
