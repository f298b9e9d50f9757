"""Pytest configuration and shared fixtures."""

import os
from typing import Optional

import pytest
import pytest_asyncio

from hipbot.communication.stanza import Unit
from hipbot.config import HipbotSettings
from hipbot.dialog import DialogEngine, DialogTurn, Reply
from hipbot.transport import Transport

BOT_JID = "1_100@chat.hipchat.com"


class FakeTransport(Transport):
    """In-memory transport: records what is sent, lets tests push units in."""

    def __init__(self):
        super().__init__()
        self.sent: list[Unit] = []
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def send(self, unit: Unit):
        self.sent.append(unit)

    async def close(self):
        self.closed = True

    # test helpers

    def go_online(self):
        self.on_online()

    def feed(self, xml: str) -> bool:
        return self.on_unit(Unit.from_string(xml))

    def drop(self, reason: str = "stream closed"):
        self.on_lost(reason)


class RecordingDialog(DialogEngine):
    """Dialog that records every turn and answers with a fixed reply."""

    def __init__(self, reply: Optional[str] = "ok"):
        self.reply = reply
        self.turns: list[DialogTurn] = []

    async def dispatch(self, turn: DialogTurn) -> Optional[Reply]:
        self.turns.append(turn)
        if self.reply is None:
            return None
        session = dict(turn.session_state, count=turn.session_state.get("count", 0) + 1)
        return Reply(text=self.reply, session_state=session, user_data=dict(turn.user_data))


def make_unit(xml: str) -> Unit:
    return Unit.from_string(xml)


@pytest.fixture
def settings():
    return HipbotSettings(
        _env_file=None,
        jid=BOT_JID,
        password="secret",
        keepalive_interval=30.0,
        rooms=[],
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def dialog():
    return RecordingDialog()


@pytest_asyncio.fixture
async def db_pool():
    """Initialize a database pool for PostgresStore tests."""
    from hipbot.db.connection import init_db, close_db

    db_url = os.environ.get("HIPBOT_TEST_DATABASE_URL")
    if not db_url:
        pytest.skip("HIPBOT_TEST_DATABASE_URL not set")

    await init_db(db_url)
    yield
    await close_db()
