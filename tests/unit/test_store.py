"""Unit tests for the save file store."""

from unittest.mock import AsyncMock, patch

import aiosqlite
import pytest

from src.dotastalker.exceptions import PersistenceError
from src.dotastalker.persistence.models import ClientIdentity, SaveData
from src.dotastalker.persistence.store import SaveStore


@pytest.fixture
def populated():
    return SaveData(
        channels={-1001, -1002},
        registrations={
            ClientIdentity("token-a", "76561198000000001"): 11,
            ClientIdentity("token-b", "76561198000000001"): 11,
            ClientIdentity("token-c", "76561198000000002"): 22,
        },
        tracks={11: {-1001, -1002}, 22: {-1002}},
    )


async def test_missing_file_loads_empty_and_is_not_created(tmp_path):
    path = tmp_path / "data" / "save.db"
    store = SaveStore(path)

    data = await store.load()

    assert data == SaveData()
    assert not path.exists()


async def test_round_trip(tmp_path, populated):
    store = SaveStore(tmp_path / "save.db")

    await store.save(populated)
    loaded = await store.load()

    assert loaded.channels == populated.channels
    assert loaded.registrations == populated.registrations
    assert loaded.tracks == populated.tracks


async def test_save_overwrites_previous_content(tmp_path, populated):
    store = SaveStore(tmp_path / "save.db")
    await store.save(populated)

    await store.save(SaveData(channels={-5}))
    loaded = await store.load()

    assert loaded == SaveData(channels={-5})


async def test_save_creates_parent_directory(tmp_path, populated):
    path = tmp_path / "nested" / "dir" / "save.db"

    await SaveStore(path).save(populated)

    assert path.exists()


async def test_undecodable_file_loads_empty(tmp_path):
    path = tmp_path / "save.db"
    path.write_bytes(b"this is definitely not an sqlite database" * 20)

    with patch("src.dotastalker.persistence.store.logger") as mock_logger:
        data = await SaveStore(path).load()

    assert data == SaveData()
    mock_logger.error.assert_called_once()


async def test_database_without_tables_loads_empty(tmp_path):
    path = tmp_path / "save.db"
    async with aiosqlite.connect(str(path)) as db:
        await db.execute("CREATE TABLE unrelated (x INTEGER)")
        await db.commit()

    data = await SaveStore(path).load()

    assert data == SaveData()


async def test_save_replaces_undecodable_file(tmp_path, populated):
    path = tmp_path / "save.db"
    path.write_bytes(b"garbage" * 200)
    store = SaveStore(path)

    await store.save(populated)

    assert (await store.load()).tracks == populated.tracks


async def test_save_retries_then_raises(tmp_path, populated):
    store = SaveStore(tmp_path / "save.db", save_retries=2, retry_backoff_seconds=0)
    store._write = AsyncMock(side_effect=OSError("disk full"))  # noqa: SLF001

    with pytest.raises(PersistenceError, match="disk full"):
        await store.save(populated)

    assert store._write.await_count == 3  # noqa: SLF001


async def test_save_succeeds_after_transient_failure(tmp_path, populated):
    store = SaveStore(tmp_path / "save.db", save_retries=1, retry_backoff_seconds=0)
    store._write = AsyncMock(side_effect=[OSError("busy"), None])  # noqa: SLF001

    await store.save(populated)

    assert store._write.await_count == 2  # noqa: SLF001


def test_retry_budget_follows_config(tmp_path):
    store = SaveStore(tmp_path / "save.db", save_retries=2)

    store.on_config_updated("store.save_retries", 5)
    store.on_config_updated("notifier.max_retries", 9)

    assert store.save_retries == 5
