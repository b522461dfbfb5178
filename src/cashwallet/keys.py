"""
Key management interface and a store-backed implementation.

Key derivation happens elsewhere; this module only stores and looks up the
resulting key records.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from loguru import logger

from cashwallet.models import KeyRecord
from cashwallet.storage.store import PersistentStore


class KeyManager(ABC):
    @abstractmethod
    async def fetch_private_key(self, address: str) -> bytes | None:
        """Get the private key controlling an address, None if unknown"""

    @abstractmethod
    async def retrieve_keys(self, wallet_id: int) -> list[KeyRecord]:
        """Get all key records of a wallet"""

    @abstractmethod
    async def create_keys(self, record: KeyRecord) -> None:
        """Store a freshly derived key record"""


class StoreKeyManager(KeyManager):
    """KeyManager over the ``keys`` table of the persistent store."""

    def __init__(self, store: PersistentStore):
        self.store = store

    async def fetch_private_key(self, address: str) -> bytes | None:
        try:
            await self.store.ensure_started()
            row = (
                self.store.get_handle()
                .execute(
                    "SELECT private_key FROM keys WHERE address = ? OR token_address = ?",
                    (address, address),
                )
                .fetchone()
            )
        except Exception as e:
            logger.error(f"Failed to fetch private key for {address}: {e}")
            return None
        if row is None or row["private_key"] is None:
            return None
        return bytes(row["private_key"])

    async def retrieve_keys(self, wallet_id: int) -> list[KeyRecord]:
        try:
            await self.store.ensure_started()
            rows = (
                self.store.get_handle()
                .execute(
                    "SELECT wallet_id, address, token_address, public_key, private_key, "
                    "account_index, change_index, address_index "
                    "FROM keys WHERE wallet_id = ?",
                    (wallet_id,),
                )
                .fetchall()
            )
        except Exception as e:
            logger.error(f"Failed to retrieve keys for wallet {wallet_id}: {e}")
            return []

        return [
            KeyRecord(
                wallet_id=row["wallet_id"],
                address=row["address"],
                token_address=row["token_address"],
                public_key=bytes(row["public_key"]) if row["public_key"] else None,
                private_key=bytes(row["private_key"]),
                account_index=row["account_index"],
                change_index=row["change_index"],
                address_index=row["address_index"],
            )
            for row in rows
        ]

    async def create_keys(self, record: KeyRecord) -> None:
        await self.store.ensure_started()
        with self.store.transaction() as db:
            db.execute(
                "INSERT OR REPLACE INTO keys (wallet_id, public_key, private_key, address, "
                "token_address, account_index, change_index, address_index) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.wallet_id,
                    record.public_key,
                    record.private_key,
                    record.address,
                    record.token_address,
                    record.account_index,
                    record.change_index,
                    record.address_index,
                ),
            )
        self.store.schedule_save()
