"""Unit tests for control request handling in the reconciliation actor."""

import asyncio
import uuid
from unittest.mock import AsyncMock

import pytest

from conftest import STEAM_ID
from src.dotastalker.exceptions import ChannelNotBoundError, PersistenceError
from src.dotastalker.persistence.models import ClientIdentity, SaveData
from src.dotastalker.persistence.store import SaveStore
from src.dotastalker.tracker.actor import ReconciliationActor
from src.dotastalker.tracker.requests import AddTrack, BindChannel, RegisterUser, TrackerClient

USER = 11
CHANNEL = -1001


@pytest.fixture
def store(tmp_path):
    return SaveStore(tmp_path / "save.db", retry_backoff_seconds=0)


@pytest.fixture
def actor(store, fake_sink):
    return ReconciliationActor(SaveData(), store, fake_sink, asyncio.Queue(), asyncio.Queue(maxsize=10))


@pytest.fixture
def spy_save(actor):
    """Count writes while still hitting the real file."""
    actor.store.save = AsyncMock(wraps=actor.store.save)
    return actor.store.save


class TestRegisterUser:
    """Test RegisterUser handling."""

    async def test_returns_uuid_token_and_persists(self, actor, store):
        token = await actor.register_user(USER, STEAM_ID)

        uuid.UUID(token)
        assert actor.save_data.registrations == {ClientIdentity(token, STEAM_ID): USER}
        assert (await store.load()).registrations == actor.save_data.registrations

    async def test_reregistering_keeps_both_credentials(self, actor):
        first = await actor.register_user(USER, STEAM_ID)
        second = await actor.register_user(USER, STEAM_ID)

        assert first != second
        assert actor.save_data.registrations[ClientIdentity(first, STEAM_ID)] == USER
        assert actor.save_data.registrations[ClientIdentity(second, STEAM_ID)] == USER

    async def test_persistence_failure_leaves_state_untouched(self, actor):
        actor.store.save = AsyncMock(side_effect=PersistenceError("disk full"))

        with pytest.raises(PersistenceError):
            await actor.register_user(USER, STEAM_ID)

        assert actor.save_data.registrations == {}


class TestBindChannel:
    """Test BindChannel handling."""

    async def test_bind_is_idempotent(self, actor, spy_save):
        await actor.bind_channel(CHANNEL)
        await actor.bind_channel(CHANNEL)

        assert actor.save_data.channels == {CHANNEL}
        assert spy_save.await_count == 1


class TestAddTrack:
    """Test AddTrack handling."""

    async def test_unbound_channel_rejected(self, actor, spy_save):
        with pytest.raises(ChannelNotBoundError):
            await actor.add_track(USER, CHANNEL)

        assert actor.save_data.tracks == {}
        spy_save.assert_not_awaited()

    async def test_bound_channel_tracked_and_persisted(self, actor, store):
        await actor.bind_channel(CHANNEL)
        await actor.add_track(USER, CHANNEL)

        assert actor.save_data.tracks == {USER: {CHANNEL}}
        assert (await store.load()).tracks == {USER: {CHANNEL}}

    async def test_add_track_is_idempotent(self, actor, spy_save):
        await actor.bind_channel(CHANNEL)
        await actor.add_track(USER, CHANNEL)
        await actor.add_track(USER, CHANNEL)

        assert actor.save_data.tracks == {USER: {CHANNEL}}
        assert spy_save.await_count == 2


class TestRemoveTrack:
    """Test RemoveTrack handling."""

    async def test_absent_pair_is_noop_without_write(self, actor, spy_save):
        await actor.remove_track(USER, CHANNEL)

        assert actor.save_data.tracks == {}
        spy_save.assert_not_awaited()

    async def test_last_channel_prunes_user(self, actor, store):
        await actor.bind_channel(CHANNEL)
        await actor.bind_channel(-1002)
        await actor.add_track(USER, CHANNEL)
        await actor.add_track(USER, -1002)

        await actor.remove_track(USER, CHANNEL)
        assert actor.save_data.tracks == {USER: {-1002}}

        await actor.remove_track(USER, -1002)
        assert actor.save_data.tracks == {}
        assert (await store.load()).tracks == {}


class TestHandleControl:
    """Test reply futures."""

    async def test_result_delivered_on_reply(self, actor):
        request = RegisterUser(user_id=USER, steam_id=STEAM_ID)

        await actor.handle_control(request)

        token = request.reply.result()
        assert ClientIdentity(token, STEAM_ID) in actor.save_data.registrations

    async def test_error_delivered_on_reply(self, actor):
        request = AddTrack(user_id=USER, channel_id=CHANNEL)

        await actor.handle_control(request)

        with pytest.raises(ChannelNotBoundError):
            request.reply.result()

    async def test_abandoned_reply_is_ignored(self, actor):
        request = BindChannel(channel_id=CHANNEL)
        request.reply.cancel()

        await actor.handle_control(request)

        assert actor.save_data.channels == {CHANNEL}


class TestTrackerClient:
    """Drive the running actor through its control queue."""

    async def test_full_command_sequence(self, actor):
        client = TrackerClient(actor.control_queue)
        await actor.start()
        try:
            token = await asyncio.wait_for(client.register_user(USER, STEAM_ID), timeout=2)
            await asyncio.wait_for(client.bind_channel(CHANNEL), timeout=2)
            await asyncio.wait_for(client.add_track(USER, CHANNEL), timeout=2)
            await asyncio.wait_for(client.remove_track(USER, CHANNEL), timeout=2)
        finally:
            await actor.stop()

        assert actor.save_data.registrations == {ClientIdentity(token, STEAM_ID): USER}
        assert actor.save_data.channels == {CHANNEL}
        assert actor.save_data.tracks == {}

    async def test_error_raised_to_caller(self, actor):
        client = TrackerClient(actor.control_queue)
        await actor.start()
        try:
            with pytest.raises(ChannelNotBoundError):
                await asyncio.wait_for(client.add_track(USER, CHANNEL), timeout=2)
        finally:
            await actor.stop()
