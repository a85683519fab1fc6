"""SQLite-backed save file for the tracker's durable state."""

from __future__ import annotations

import asyncio
from pathlib import Path

import aiosqlite
import structlog

from ..exceptions import PersistenceError
from .models import ClientIdentity, SaveData

logger = structlog.get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS channel_bindings (
    channel_id INTEGER PRIMARY KEY
) STRICT;

CREATE TABLE IF NOT EXISTS registrations (
    token TEXT NOT NULL,
    steam_id TEXT NOT NULL,
    user_id INTEGER NOT NULL,
    PRIMARY KEY (token, steam_id)
) STRICT;

CREATE TABLE IF NOT EXISTS tracks (
    user_id INTEGER NOT NULL,
    channel_id INTEGER NOT NULL,
    PRIMARY KEY (user_id, channel_id)
) STRICT;
"""


class SaveStore:
    """Loads and overwrites the single save file holding ``SaveData``.

    The whole aggregate is rewritten on every save. There is one writer (the
    tracker), so no locking is done here.
    """

    def __init__(
        self,
        path: str | Path,
        save_retries: int = 2,
        retry_backoff_seconds: float = 0.1,
    ):
        """
        Initialize the store.

        Args:
            path: Location of the save file
            save_retries: Extra attempts after a failed write
            retry_backoff_seconds: Delay before the first retry, doubled each time
        """
        self.path = Path(path)
        self.save_retries = save_retries
        self.retry_backoff_seconds = retry_backoff_seconds

    def on_config_updated(self, key: str, value) -> None:
        if key == "store.save_retries":
            self.save_retries = value

    async def load(self) -> SaveData:
        """
        Read the save file.

        Returns:
            The stored aggregate, or an empty one when the file is missing or
            cannot be decoded. A missing file is not created.
        """
        if not self.path.exists():
            logger.info("save_file_missing", path=str(self.path))
            return SaveData()

        try:
            data = await self._read()
        except (aiosqlite.Error, OSError, TypeError, ValueError) as e:
            logger.error(
                "save_file_undecodable",
                path=str(self.path),
                error=str(e),
                error_type=type(e).__name__,
            )
            return SaveData()

        logger.info(
            "save_file_loaded",
            path=str(self.path),
            channels=len(data.channels),
            registrations=len(data.registrations),
            tracked_users=len(data.tracks),
        )
        return data

    async def save(self, data: SaveData) -> None:
        """
        Overwrite the save file with ``data``.

        Raises:
            PersistenceError: If every attempt failed
        """
        attempts = self.save_retries + 1
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                await self._write(data)
            except (aiosqlite.Error, OSError) as e:
                last_error = e
                logger.warning(
                    "save_attempt_failed",
                    path=str(self.path),
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if attempt < attempts:
                    await asyncio.sleep(self.retry_backoff_seconds * 2 ** (attempt - 1))
                continue

            logger.debug("save_file_written", path=str(self.path), attempt=attempt)
            return

        raise PersistenceError(f"Could not write save file {self.path}: {last_error}") from last_error

    async def _read(self) -> SaveData:
        data = SaveData()
        async with aiosqlite.connect(str(self.path)) as db:
            cursor = await db.execute("SELECT channel_id FROM channel_bindings")
            for (channel_id,) in await cursor.fetchall():
                data.channels.add(int(channel_id))
            await cursor.close()

            cursor = await db.execute("SELECT token, steam_id, user_id FROM registrations")
            for token, steam_id, user_id in await cursor.fetchall():
                data.registrations[ClientIdentity(str(token), str(steam_id))] = int(user_id)
            await cursor.close()

            cursor = await db.execute("SELECT user_id, channel_id FROM tracks")
            for user_id, channel_id in await cursor.fetchall():
                data.tracks.setdefault(int(user_id), set()).add(int(channel_id))
            await cursor.close()
        return data

    async def _write(self, data: SaveData) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await self._write_rows(data)
        except aiosqlite.OperationalError:
            raise
        except aiosqlite.DatabaseError as e:
            # Existing file is not a database; start over with a fresh one.
            logger.warning("save_file_replaced", path=str(self.path), error=str(e))
            self.path.unlink(missing_ok=True)
            await self._write_rows(data)

    async def _write_rows(self, data: SaveData) -> None:
        async with aiosqlite.connect(str(self.path)) as db:
            await db.execute("PRAGMA synchronous=FULL")
            await db.executescript(SCHEMA)

            await db.execute("DELETE FROM channel_bindings")
            await db.execute("DELETE FROM registrations")
            await db.execute("DELETE FROM tracks")

            await db.executemany(
                "INSERT INTO channel_bindings (channel_id) VALUES (?)",
                [(channel_id,) for channel_id in sorted(data.channels)],
            )
            await db.executemany(
                "INSERT INTO registrations (token, steam_id, user_id) VALUES (?, ?, ?)",
                [
                    (identity.token, identity.steam_id, user_id)
                    for identity, user_id in data.registrations.items()
                ],
            )
            await db.executemany(
                "INSERT INTO tracks (user_id, channel_id) VALUES (?, ?)",
                [
                    (user_id, channel_id)
                    for user_id, channels in sorted(data.tracks.items())
                    for channel_id in sorted(channels)
                ],
            )
            await db.commit()
