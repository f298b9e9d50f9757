"""Tests for the send pipeline."""

import asyncio
from unittest.mock import MagicMock

import pytest

from hipbot.communication.outbound import SendPipeline
from hipbot.communication.stanza import NS_PROFILE, PROFILE_ID_PREFIX
from hipbot.correlation import CorrelationRegistry


class TestSendPipeline:

    def test_send_unit_without_transport(self):
        pipeline = SendPipeline(CorrelationRegistry())
        with pytest.raises(RuntimeError, match="no transport"):
            pipeline.send_unit(MagicMock())

    @pytest.mark.asyncio
    async def test_send_registers_and_transmits(self):
        registry = CorrelationRegistry()
        transmit = MagicMock()
        pipeline = SendPipeline(registry, transmit)

        future = pipeline.send("bob@x/phone", "hello")

        unit = transmit.call_args.args[0]
        assert unit.subtype == "chat"
        assert str(unit.recipient) == "bob@x/phone"
        assert unit.body == "hello"
        assert unit.id in registry
        assert not future.done()

    @pytest.mark.asyncio
    async def test_echo_resolves_once(self):
        registry = CorrelationRegistry()
        transmit = MagicMock()
        pipeline = SendPipeline(registry, transmit)

        future = pipeline.send_group("room@conf.x", "hi all")
        unit = transmit.call_args.args[0]
        assert unit.subtype == "groupchat"

        assert registry.resolve(unit.id) is True
        assert await asyncio.wait_for(future, 1) is None
        assert registry.resolve(unit.id) is False

    @pytest.mark.asyncio
    async def test_ids_are_unique(self):
        transmit = MagicMock()
        pipeline = SendPipeline(CorrelationRegistry(), transmit)
        pipeline.send("a@x", "1")
        pipeline.send("a@x", "2")
        ids = {call.args[0].id for call in transmit.call_args_list}
        assert len(ids) == 2

    @pytest.mark.asyncio
    async def test_profile_query(self):
        registry = CorrelationRegistry()
        transmit = MagicMock()
        pipeline = SendPipeline(registry, transmit)

        pipeline.query_profile("alice@x")

        unit = transmit.call_args.args[0]
        assert unit.category == "iq"
        assert unit.id.startswith(PROFILE_ID_PREFIX)
        assert unit.child("query", NS_PROFILE) is not None
        assert unit.id in registry

    @pytest.mark.asyncio
    async def test_transmit_failure_discards_entry(self):
        registry = CorrelationRegistry()
        pipeline = SendPipeline(registry, MagicMock(side_effect=ConnectionError("gone")))

        with pytest.raises(ConnectionError):
            pipeline.send("a@x", "hi")
        assert registry.pending == 0

    @pytest.mark.asyncio
    async def test_attach_switches_transport(self):
        first, second = MagicMock(), MagicMock()
        pipeline = SendPipeline(CorrelationRegistry(), first)
        pipeline.attach(second)
        pipeline.send("a@x", "hi")
        first.assert_not_called()
        second.assert_called_once()
