"""
UTXO ledger: the local cache of a wallet's unspent outputs.

Stored outputs are never marked spent directly. Instead the ledger is
reconciled against a freshly fetched set from the network: anything stored
for the address that is missing from the fresh set has been spent (or
invalidated) and is deleted.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Sequence

import pydantic
from loguru import logger

from cashwallet.backends.base import NetworkBackend
from cashwallet.ledger.addresses import AddressDirectory
from cashwallet.models import Token, UTXORecord
from cashwallet.storage.store import PersistentStore

UTXO_COLUMNS = "wallet_id, address, token_address, height, tx_hash, tx_pos, amount, prefix, token"


def decode_token(raw: str | None, outpoint: str = "") -> Token | None:
    """Decode the stored token JSON. Malformed data is treated as no token."""
    if not raw:
        return None
    try:
        return Token.model_validate_json(raw)
    except pydantic.ValidationError as e:
        logger.warning(f"Ignoring malformed token data on UTXO {outpoint}: {e}")
        return None


def row_to_utxo(row: sqlite3.Row) -> UTXORecord:
    outpoint = f"{row['tx_hash']}:{row['tx_pos']}"
    return UTXORecord(
        wallet_id=row["wallet_id"],
        address=row["address"],
        token_address=row["token_address"],
        height=row["height"],
        tx_hash=row["tx_hash"],
        tx_pos=row["tx_pos"],
        amount=row["amount"],
        prefix=row["prefix"],
        token=decode_token(row["token"], outpoint),
    )


class UTXOLedger:
    """
    Stores, queries and reconciles UTXOs per wallet and address.

    Write batches are atomic: a failure rolls back and raises
    PersistenceError. Reads degrade to an empty result on failure, so an
    empty list means "unknown", not "no coins".
    """

    def __init__(self, store: PersistentStore):
        self.store = store

    async def upsert(self, records: Sequence[UTXORecord]) -> None:
        """Insert or replace records keyed by (wallet_id, tx_hash, tx_pos)."""
        await self.store.ensure_started()
        with self.store.transaction() as db:
            db.executemany(
                f"INSERT OR REPLACE INTO UTXOs ({UTXO_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        utxo.wallet_id,
                        utxo.address,
                        utxo.token_address or None,
                        utxo.height or 0,
                        utxo.tx_hash,
                        utxo.tx_pos,
                        utxo.amount,
                        utxo.prefix or "unknown",
                        utxo.token.to_json() if utxo.token else None,
                    )
                    for utxo in records
                ],
            )
        if records:
            logger.debug(f"Stored {len(records)} UTXOs")
            self.store.schedule_save()

    async def delete(self, wallet_id: int, records: Iterable[UTXORecord]) -> None:
        """Delete records in one atomic batch."""
        await self.store.ensure_started()
        params = [(wallet_id, u.tx_hash, u.tx_pos, u.address) for u in records]
        if not params:
            return
        with self.store.transaction() as db:
            db.executemany(
                "DELETE FROM UTXOs WHERE wallet_id = ? AND tx_hash = ? AND tx_pos = ? "
                "AND address = ?",
                params,
            )
        logger.debug(f"Deleted {len(params)} UTXOs for wallet {wallet_id}")
        self.store.schedule_save()

    async def query_by_address(self, wallet_id: int, address: str) -> list[UTXORecord]:
        """Get stored UTXOs for an address."""
        try:
            await self.store.ensure_started()
            rows = (
                self.store.get_handle()
                .execute(
                    f"SELECT {UTXO_COLUMNS} FROM UTXOs WHERE wallet_id = ? AND address = ? "
                    "ORDER BY tx_hash, tx_pos",
                    (wallet_id, address),
                )
                .fetchall()
            )
            return [row_to_utxo(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching UTXOs for {address}: {e}")
            return []

    async def query_by_wallet(self, wallet_id: int) -> list[UTXORecord]:
        """Get every stored UTXO of a wallet."""
        try:
            await self.store.ensure_started()
            rows = (
                self.store.get_handle()
                .execute(
                    f"SELECT {UTXO_COLUMNS} FROM UTXOs WHERE wallet_id = ? "
                    "ORDER BY address, tx_hash, tx_pos",
                    (wallet_id,),
                )
                .fetchall()
            )
            return [row_to_utxo(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching UTXOs for wallet {wallet_id}: {e}")
            return []

    async def reconcile(
        self, wallet_id: int, address: str, fresh: Sequence[UTXORecord]
    ) -> list[UTXORecord]:
        """
        Replace the stored set for an address with a freshly observed one.

        Stored records whose key is absent from ``fresh`` are deleted, then
        ``fresh`` is upserted. Returns the stored set afterwards.
        """
        fresh_keys = {(wallet_id, u.tx_hash, u.tx_pos) for u in fresh}
        existing = await self.query_by_address(wallet_id, address)
        stale = [u for u in existing if u.key not in fresh_keys]

        if stale:
            await self.delete(wallet_id, stale)
            logger.info(f"Removed {len(stale)} spent UTXOs from {address}")

        await self.upsert(fresh)
        return await self.query_by_address(wallet_id, address)

    async def list_addresses(self, wallet_id: int) -> list[str]:
        """All addresses of a wallet with stored key, address or UTXO rows."""
        try:
            await self.store.ensure_started()
            rows = (
                self.store.get_handle()
                .execute(
                    "SELECT address FROM addresses WHERE wallet_id = ? "
                    "UNION SELECT address FROM keys WHERE wallet_id = ? "
                    "UNION SELECT address FROM UTXOs WHERE wallet_id = ? "
                    "ORDER BY address",
                    (wallet_id, wallet_id, wallet_id),
                )
                .fetchall()
            )
        except Exception as e:
            logger.error(f"Error fetching addresses for wallet {wallet_id}: {e}")
            return []
        return [row["address"] for row in rows]

    async def split_by_token(
        self, wallet_id: int, addresses: Iterable[str]
    ) -> tuple[dict[str, list[UTXORecord]], dict[str, list[UTXORecord]]]:
        """
        Group stored UTXOs per address into plain and token-bearing maps.

        Returns:
            (plain_utxos, token_utxos), both keyed by address
        """
        plain: dict[str, list[UTXORecord]] = {}
        tokens: dict[str, list[UTXORecord]] = {}
        for address in addresses:
            utxos = await self.query_by_address(wallet_id, address)
            plain[address] = [u for u in utxos if u.token is None]
            tokens[address] = [u for u in utxos if u.token is not None]
        return plain, tokens


class UTXOSyncService:
    """Fetches fresh UTXOs from the network and reconciles them into the ledger."""

    def __init__(
        self,
        ledger: UTXOLedger,
        directory: AddressDirectory,
        backend: NetworkBackend,
        prefix: str = "bitcoincash",
    ):
        self.ledger = ledger
        self.directory = directory
        self.backend = backend
        self.prefix = prefix

    async def sync_address(self, wallet_id: int, address: str) -> list[UTXORecord]:
        """Reconcile one address. Returns the stored set, or [] on failure."""
        try:
            fetched = await self.backend.get_utxos(address)
            token_address = await self.directory.resolve(wallet_id, address)

            fresh = [
                UTXORecord(
                    wallet_id=wallet_id,
                    address=address,
                    token_address=token_address,
                    height=utxo.height,
                    tx_hash=utxo.tx_hash,
                    tx_pos=utxo.tx_pos,
                    amount=utxo.value,
                    prefix=self.prefix,
                    token=utxo.token,
                )
                for utxo in fetched
            ]
            return await self.ledger.reconcile(wallet_id, address, fresh)
        except Exception as e:
            logger.error(f"Error syncing UTXOs for {address}: {e}")
            return []

    async def sync_wallet(self, wallet_id: int) -> dict[str, list[UTXORecord]]:
        """Reconcile every known address of a wallet."""
        result = {}
        for address in await self.ledger.list_addresses(wallet_id):
            result[address] = await self.sync_address(wallet_id, address)
        total = sum(len(u) for u in result.values())
        logger.info(f"Synced wallet {wallet_id}: {len(result)} addresses, {total} UTXOs")
        return result
