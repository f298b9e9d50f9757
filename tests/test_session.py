"""Tests for the session bridge: load, dispatch, save, reply."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from hipbot.communication.router import Route, RouteKind
from hipbot.directory import Directory
from hipbot.errors import StoreError
from hipbot.session import SessionBridge
from hipbot.stores import MemoryStore

from conftest import RecordingDialog, make_unit


def _private(body="hi"):
    return make_unit(f'<message type="chat" from="alice@x/phone" id="m1"><body>{body}</body></message>')


def _group(body="hi"):
    return make_unit(f'<message type="groupchat" from="room@conf.x/Alice" id="g1"><body>{body}</body></message>')


ROUTE = Route(RouteKind.CONVERSATION, identity="alice@x")


def _bridge(dialog=None, session_store=None, user_store=None, admit=None, reply_to_room=False):
    directory = Directory()
    directory.merge_roster_item("alice@x", "Alice", "alice")
    pipeline = MagicMock()
    bridge = SessionBridge(
        dialog or RecordingDialog(),
        session_store or MemoryStore(),
        user_store or MemoryStore(),
        directory,
        pipeline,
        admit=admit,
        reply_to_room=reply_to_room,
    )
    return bridge, pipeline


class TestTurn:

    @pytest.mark.asyncio
    async def test_first_turn_gets_empty_state_and_identity(self):
        dialog = RecordingDialog()
        bridge, _ = _bridge(dialog)

        await bridge.handle(_private(), ROUTE)

        turn = dialog.turns[0]
        assert turn.session_state == {}
        assert turn.user_data["identity"]["address"] == "alice@x"
        assert turn.user_data["identity"]["name"] == "Alice"
        assert turn.address == "alice@x"
        assert turn.sender == "alice@x/phone"
        assert turn.is_group is False

    @pytest.mark.asyncio
    async def test_unknown_contact_identity_is_none(self):
        dialog = RecordingDialog()
        bridge, _ = _bridge(dialog)
        unit = make_unit('<message type="chat" from="zed@x/a"><body>hi</body></message>')

        await bridge.handle(unit, Route(RouteKind.CONVERSATION, identity="zed@x"))
        assert dialog.turns[0].user_data["identity"] is None

    @pytest.mark.asyncio
    async def test_state_saved_to_both_stores(self):
        sessions, users = MemoryStore(), MemoryStore()
        bridge, _ = _bridge(session_store=sessions, user_store=users)

        await bridge.handle(_private(), ROUTE)
        await bridge.handle(_private(), ROUTE)

        assert (await sessions.get("alice@x"))["count"] == 2
        assert (await users.get("alice@x"))["identity"]["name"] == "Alice"

    @pytest.mark.asyncio
    async def test_private_reply_goes_to_full_sender(self):
        bridge, pipeline = _bridge()
        result = await bridge.handle(_private(), ROUTE)

        pipeline.send.assert_called_once_with("alice@x/phone", "ok")
        pipeline.send_group.assert_not_called()
        assert result is pipeline.send.return_value

    @pytest.mark.asyncio
    async def test_group_reply_goes_privately_to_occupant(self):
        dialog = RecordingDialog()
        bridge, pipeline = _bridge(dialog)
        await bridge.handle(_group(), ROUTE)

        assert dialog.turns[0].is_group is True
        pipeline.send.assert_called_once_with("room@conf.x/Alice", "ok")
        pipeline.send_group.assert_not_called()

    @pytest.mark.asyncio
    async def test_group_reply_to_room_when_enabled(self):
        bridge, pipeline = _bridge(reply_to_room=True)
        await bridge.handle(_group(), ROUTE)

        pipeline.send_group.assert_called_once_with("room@conf.x", "ok")
        pipeline.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_reply_sends_and_saves_nothing(self):
        sessions = MemoryStore()
        bridge, pipeline = _bridge(RecordingDialog(reply=None), session_store=sessions)

        assert await bridge.handle(_private(), ROUTE) is None
        pipeline.send.assert_not_called()
        assert len(sessions) == 0


class TestAdmission:

    @pytest.mark.asyncio
    async def test_group_gate_rejects(self):
        dialog = RecordingDialog()
        admit = MagicMock(return_value=False)
        bridge, pipeline = _bridge(dialog, admit=admit)

        assert await bridge.handle(_group("chatter"), ROUTE) is None
        admit.assert_called_once_with({}, "chatter")
        assert dialog.turns == []
        pipeline.send_group.assert_not_called()

    @pytest.mark.asyncio
    async def test_private_chat_bypasses_gate(self):
        dialog = RecordingDialog()
        admit = MagicMock(return_value=False)
        bridge, _ = _bridge(dialog, admit=admit)

        await bridge.handle(_private(), ROUTE)
        admit.assert_not_called()
        assert len(dialog.turns) == 1


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_load_failure(self):
        broken = MagicMock()
        broken.get = AsyncMock(side_effect=OSError("disk"))
        dialog = RecordingDialog()
        bridge, pipeline = _bridge(dialog, session_store=broken)

        with pytest.raises(StoreError, match="load"):
            await bridge.handle(_private(), ROUTE)
        assert dialog.turns == []
        pipeline.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_failure_still_writes_other_store(self):
        broken = MagicMock()
        broken.get = AsyncMock(return_value=None)
        broken.save = AsyncMock(side_effect=OSError("disk"))
        users = MemoryStore()
        bridge, pipeline = _bridge(session_store=broken, user_store=users)

        with pytest.raises(StoreError, match="save"):
            await bridge.handle(_private(), ROUTE)
        assert await users.get("alice@x") is not None
        pipeline.send.assert_not_called()
