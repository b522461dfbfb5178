"""
Persistent store: an in-memory SQLite database snapshotted to durable bytes.

The live database lives in memory; durability comes from serializing the
whole database into a single blob and handing it to a ByteStorage. Writes to
the blob are debounced so that bursts of mutations (e.g. scanning many
addresses) produce a single physical write.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger

from cashwallet.constants import DEFAULT_SAVE_DELAY, DEFAULT_SNAPSHOT_KEY
from cashwallet.errors import InitializationError, PersistenceError
from cashwallet.storage.blob import ByteStorage
from cashwallet.storage.schema import DOMAIN_TABLES, MIGRATIONS, Migration


def _new_connection() -> sqlite3.Connection:
    # Autocommit mode: batches are demarcated explicitly with BEGIN/COMMIT
    db = sqlite3.connect(":memory:", isolation_level=None)
    db.row_factory = sqlite3.Row
    return db


class PersistentStore:
    """
    Shared storage handle for the ledger components.

    Created once per process and passed to every component that needs it.
    """

    def __init__(
        self,
        storage: ByteStorage,
        snapshot_key: str = DEFAULT_SNAPSHOT_KEY,
        save_delay: float = DEFAULT_SAVE_DELAY,
        migrations: list[Migration] | None = None,
    ):
        self.storage = storage
        self.snapshot_key = snapshot_key
        self.save_delay = save_delay
        self.migrations = list(MIGRATIONS if migrations is None else migrations)

        self._db: sqlite3.Connection | None = None
        self._start_lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()
        self._dirty = False
        # Bumped by every save request; a flush only clears the dirty flag if
        # no request arrived after it serialized the database
        self._generation = 0
        self._pending_save: asyncio.Future[None] | None = None
        self._save_tasks: set[asyncio.Task[None]] = set()

    @property
    def started(self) -> bool:
        return self._db is not None

    @property
    def target_version(self) -> int:
        return len(self.migrations)

    @property
    def version(self) -> int:
        return int(self.get_handle().execute("PRAGMA user_version").fetchone()[0])

    @property
    def dirty(self) -> bool:
        return self._dirty

    async def ensure_started(self) -> None:
        """Load or create the database and bring its schema up to date. Idempotent."""
        if self._db is not None:
            return
        async with self._start_lock:
            if self._db is not None:
                return
            db = await self._load_snapshot()
            self._apply_migrations(db, self._read_version(db))
            self._db = db
            await self.flush()

    @staticmethod
    def _empty_connection() -> sqlite3.Connection:
        db = _new_connection()
        db.execute("PRAGMA user_version = 0")
        return db

    async def _load_snapshot(self) -> sqlite3.Connection:
        try:
            saved = await self.storage.get(self.snapshot_key)
        except Exception as e:
            logger.error(
                f"Could not read database snapshot '{self.snapshot_key}' ({e}); "
                "falling back to an empty store, previous data is lost"
            )
            return self._empty_connection()

        if not saved:
            logger.info("No database snapshot found, starting with an empty store")
            return self._empty_connection()

        db = _new_connection()
        try:
            db.deserialize(saved)
            # Deserialization is lazy, touch the schema to validate the blob
            db.execute("SELECT count(*) FROM sqlite_master").fetchone()
            db.execute("PRAGMA user_version").fetchone()
        except sqlite3.Error as e:
            logger.error(
                f"Database snapshot '{self.snapshot_key}' is corrupt ({e}); "
                "falling back to an empty store, previous data is lost"
            )
            db.close()
            return self._empty_connection()

        logger.debug(f"Loaded database snapshot ({len(saved)} bytes)")
        return db

    @staticmethod
    def _read_version(db: sqlite3.Connection) -> int:
        return int(db.execute("PRAGMA user_version").fetchone()[0])

    def _apply_migrations(self, db: sqlite3.Connection, current_version: int) -> None:
        target = self.target_version
        if current_version > target:
            logger.warning(
                f"Database schema version {current_version} is newer than "
                f"supported version {target}"
            )
            return

        for version in range(current_version + 1, target + 1):
            logger.debug(f"Applying schema migration {version}/{target}")
            self.migrations[version - 1](db)
            db.execute(f"PRAGMA user_version = {version}")

        if current_version < target:
            logger.info(f"Database schema migrated from v{current_version} to v{target}")

    def get_handle(self) -> sqlite3.Connection:
        """Get the live database handle."""
        if self._db is None:
            raise InitializationError("Database not started")
        return self._db

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Atomic write batch.

        Commits when the block exits normally; any exception rolls the whole
        batch back and is re-raised as PersistenceError.
        """
        db = self.get_handle()
        db.execute("BEGIN")
        try:
            yield db
            db.execute("COMMIT")
        except Exception as e:
            if db.in_transaction:
                db.execute("ROLLBACK")
            logger.error(f"Write batch rolled back: {e}")
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError(f"Write batch failed: {e}") from e

    async def flush(self) -> bool:
        """Write the database snapshot now. Returns False if the write failed."""
        async with self._flush_lock:
            if self._db is None:
                return False
            generation = self._generation
            try:
                data = self._db.serialize()
                await self.storage.set(self.snapshot_key, data)
            except Exception as e:
                # The in-memory state stays ahead of the durable copy until the next flush
                logger.error(f"Failed to persist database snapshot: {e}")
                return False
            if self._generation == generation:
                self._dirty = False
            logger.debug(f"Persisted database snapshot ({len(data)} bytes)")
            return True

    def schedule_save(self) -> asyncio.Future[None]:
        """
        Debounced flush.

        The first call in a burst starts a timer; later calls attach to the same
        pending future until the timer fires. A call made while that burst is
        being written starts a new burst, so its changes get a write of their
        own. The returned future resolves after the write, whether or not it
        succeeded.
        """
        self.get_handle()
        self._dirty = True
        self._generation += 1
        if self._pending_save is None:
            loop = asyncio.get_running_loop()
            future: asyncio.Future[None] = loop.create_future()
            self._pending_save = future
            task = loop.create_task(self._debounced_save(future))
            self._save_tasks.add(task)
            task.add_done_callback(self._save_tasks.discard)
        return self._pending_save

    async def _debounced_save(self, future: asyncio.Future[None]) -> None:
        try:
            await asyncio.sleep(self.save_delay)
            if self._pending_save is future:
                self._pending_save = None
            # A write already handed to the storage finishes even if close() cancels us
            await asyncio.shield(self.flush())
        finally:
            if self._pending_save is future:
                self._pending_save = None
            if not future.done():
                future.set_result(None)

    async def reset(self) -> None:
        """Wipe all wallet data and recreate the schema from scratch."""
        await self.ensure_started()
        db = self.get_handle()
        for table in DOMAIN_TABLES:
            db.execute(f"DROP TABLE IF EXISTS {table}")
        db.execute("PRAGMA user_version = 0")
        self._apply_migrations(db, 0)
        logger.warning("Database reset: all wallet data dropped")
        await self.flush()

    async def close(self) -> None:
        """Flush pending changes and release the database."""
        tasks = list(self._save_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self._db is not None and self._dirty:
            await self.flush()
        async with self._flush_lock:
            if self._db is not None:
                self._db.close()
                self._db = None

        # A timer cancelled before it ever ran never resolved its future
        if self._pending_save is not None and not self._pending_save.done():
            self._pending_save.set_result(None)
        self._pending_save = None
