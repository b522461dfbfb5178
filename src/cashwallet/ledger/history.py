"""
Transaction history ledger.
"""

from __future__ import annotations

from datetime import UTC, datetime

from loguru import logger

from cashwallet.backends.base import NetworkBackend
from cashwallet.errors import InitializationError
from cashwallet.models import TransactionHistoryItem
from cashwallet.storage.store import PersistentStore


class TransactionHistoryLedger:
    def __init__(self, store: PersistentStore, backend: NetworkBackend | None = None):
        self.store = store
        self.backend = backend

    async def fetch_and_store(self, wallet_id: int, address: str) -> list[TransactionHistoryItem]:
        """
        Fetch an address's history and upsert it into the transactions table.

        Existing rows get their height and timestamp refreshed. Failures are
        logged, the batch is rolled back, and whatever was fetched is returned.
        """
        history: list[TransactionHistoryItem] = []
        try:
            if self.backend is None:
                raise InitializationError("No network backend configured")
            await self.store.ensure_started()
            history = await self.backend.get_transaction_history(address)
            if not isinstance(history, list):
                raise TypeError("Invalid transaction history format")

            timestamp = datetime.now(UTC).isoformat()
            with self.store.transaction() as db:
                db.executemany(
                    "INSERT INTO transactions (wallet_id, tx_hash, height, timestamp, amount) "
                    "VALUES (?, ?, ?, ?, 0) "
                    "ON CONFLICT(wallet_id, tx_hash) DO UPDATE SET "
                    "height = excluded.height, timestamp = excluded.timestamp",
                    [(wallet_id, tx.tx_hash, tx.height, timestamp) for tx in history],
                )
        except Exception as e:
            logger.error(f"Failed to fetch and store transaction history for {address}: {e}")
            return history if isinstance(history, list) else []

        if history:
            self.store.schedule_save()
        logger.debug(f"Stored {len(history)} history entries for {address}")
        return history

    async def list_history(self, wallet_id: int) -> list[TransactionHistoryItem]:
        """Stored history of a wallet, newest first. Unconfirmed (height <= 0) come first."""
        try:
            await self.store.ensure_started()
            rows = (
                self.store.get_handle()
                .execute(
                    "SELECT tx_hash, height FROM transactions WHERE wallet_id = ? "
                    "ORDER BY CASE WHEN height <= 0 THEN 0 ELSE 1 END, height DESC, tx_hash",
                    (wallet_id,),
                )
                .fetchall()
            )
        except Exception as e:
            logger.error(f"Error fetching transaction history for wallet {wallet_id}: {e}")
            return []
        return [
            TransactionHistoryItem(tx_hash=row["tx_hash"], height=row["height"]) for row in rows
        ]
