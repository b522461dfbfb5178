"""
Address directory: maps wallet addresses to their token-aware counterparts.
"""

from __future__ import annotations

from loguru import logger

from cashwallet.models import AddressRecord
from cashwallet.storage.store import PersistentStore


class AddressDirectory:
    """Read-only lookups against the keys and addresses tables."""

    def __init__(self, store: PersistentStore):
        self.store = store

    async def resolve(self, wallet_id: int, address: str) -> str | None:
        """Get the token-aware address for a wallet address, None if unknown."""
        try:
            await self.store.ensure_started()
            db = self.store.get_handle()
            row = db.execute(
                "SELECT token_address FROM keys WHERE wallet_id = ? AND address = ?",
                (wallet_id, address),
            ).fetchone()
        except Exception as e:
            logger.error(f"Failed to fetch token address for {address}: {e}")
            return None

        if row is None or not row["token_address"]:
            logger.debug(f"No token address for wallet {wallet_id}, address {address}")
            return None
        return str(row["token_address"])

    async def list_token_addresses(self, wallet_id: int) -> dict[str, str]:
        """Map of address -> token address for every key of a wallet."""
        try:
            await self.store.ensure_started()
            rows = (
                self.store.get_handle()
                .execute(
                    "SELECT address, token_address FROM keys "
                    "WHERE wallet_id = ? AND token_address IS NOT NULL",
                    (wallet_id,),
                )
                .fetchall()
            )
        except Exception as e:
            logger.error(f"Failed to list token addresses for wallet {wallet_id}: {e}")
            return {}
        return {row["address"]: row["token_address"] for row in rows}

    async def register_address(self, record: AddressRecord) -> bool:
        """Record a derived address. Returns False if the insert failed."""
        try:
            await self.store.ensure_started()
            with self.store.transaction() as db:
                db.execute(
                    "INSERT INTO addresses "
                    "(wallet_id, address, balance, hd_index, change_index, prefix) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        record.wallet_id,
                        record.address,
                        record.balance,
                        record.hd_index,
                        record.change_index,
                        record.prefix,
                    ),
                )
        except Exception as e:
            logger.error(f"Failed to register address {record.address}: {e}")
            return False
        self.store.schedule_save()
        return True
