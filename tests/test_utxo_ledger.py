"""
Tests for the UTXO ledger and network reconciliation.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from cashwallet.backends.base import NetworkUTXO
from cashwallet.errors import PersistenceError
from cashwallet.keys import StoreKeyManager
from cashwallet.ledger.addresses import AddressDirectory
from cashwallet.ledger.utxos import UTXOLedger, UTXOSyncService, decode_token
from cashwallet.models import AddressRecord, NFTData, Token
from cashwallet.storage.store import PersistentStore
from tests.conftest import (
    ADDRESS,
    CATEGORY,
    OTHER_ADDRESS,
    TOKEN_ADDRESS,
    WALLET_ID,
    make_utxo,
)


def insert_raw_token(store: PersistentStore, token_json: str) -> None:
    store.get_handle().execute(
        "INSERT INTO UTXOs (wallet_id, address, height, tx_hash, tx_pos, amount, prefix, token) "
        "VALUES (?, ?, 1, ?, 0, 1000, 'bitcoincash', ?)",
        (WALLET_ID, ADDRESS, "ee" * 32, token_json),
    )


class TestUpsertAndQuery:
    @pytest.mark.asyncio
    async def test_query_returns_stored(self, ledger: UTXOLedger) -> None:
        utxos = [make_utxo(tx_pos=1, amount=2000), make_utxo(tx_pos=0, amount=1000)]
        await ledger.upsert(utxos)

        stored = await ledger.query_by_address(WALLET_ID, ADDRESS)

        assert [(u.tx_pos, u.amount) for u in stored] == [(0, 1000), (1, 2000)]
        assert all(u.prefix == "bitcoincash" for u in stored)

    @pytest.mark.asyncio
    async def test_upsert_replaces_same_outpoint(self, ledger: UTXOLedger) -> None:
        await ledger.upsert([make_utxo(amount=1000, height=0)])
        await ledger.upsert([make_utxo(amount=1000, height=800_001)])

        stored = await ledger.query_by_wallet(WALLET_ID)

        assert len(stored) == 1
        assert stored[0].height == 800_001

    @pytest.mark.asyncio
    async def test_other_wallet_not_visible(self, ledger: UTXOLedger) -> None:
        await ledger.upsert([make_utxo(), make_utxo(tx_hash="cd" * 32, wallet_id=2)])

        assert len(await ledger.query_by_address(WALLET_ID, ADDRESS)) == 1
        assert len(await ledger.query_by_address(2, ADDRESS)) == 1

    @pytest.mark.asyncio
    async def test_upsert_schedules_save(self, ledger: UTXOLedger, store: PersistentStore) -> None:
        await ledger.upsert([make_utxo()])
        assert store.dirty is True

    @pytest.mark.asyncio
    async def test_fungible_token_roundtrip(self, ledger: UTXOLedger) -> None:
        token = Token(category=CATEGORY, amount=500)
        await ledger.upsert([make_utxo(amount=1000, token=token)])

        (stored,) = await ledger.query_by_address(WALLET_ID, ADDRESS)

        assert stored.token == token

    @pytest.mark.asyncio
    async def test_nft_roundtrip_has_no_amount(self, ledger: UTXOLedger) -> None:
        """An NFT is stored without a fungible amount and read back the same way."""
        token = Token(category=CATEGORY, nft=NFTData(capability="minting", commitment="beef"))
        await ledger.upsert([make_utxo(amount=1000, token=token)])

        (stored,) = await ledger.query_by_address(WALLET_ID, ADDRESS)

        assert stored.token is not None
        assert stored.token.amount is None
        assert stored.token.nft == NFTData(capability="minting", commitment="beef")


class TestTokenDecoding:
    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            '{"category": "aa"}',
            '{"category": "aa", "amount": 5, "nft": {"capability": "none"}}',
            '{"category": "aa", "amount": -1}',
            '{"category": "aa", "nft": {"capability": "burn"}}',
        ],
    )
    def test_invalid_token_is_none(self, raw: str) -> None:
        assert decode_token(raw) is None

    def test_empty_is_none(self) -> None:
        assert decode_token(None) is None
        assert decode_token("") is None

    def test_pure_nft_with_zero_amount(self) -> None:
        token = decode_token('{"category": "aa", "amount": 0, "nft": {"capability": "none"}}')
        assert token is not None
        assert token.is_nft
        assert token.fungible_amount == 0

    @pytest.mark.asyncio
    async def test_malformed_row_reads_as_plain(
        self, ledger: UTXOLedger, store: PersistentStore
    ) -> None:
        insert_raw_token(store, '{"category": "aa"}')

        (stored,) = await ledger.query_by_address(WALLET_ID, ADDRESS)

        assert stored.token is None
        assert stored.amount == 1000


class TestReconcile:
    @pytest.mark.asyncio
    async def test_stale_records_removed(self, ledger: UTXOLedger) -> None:
        spent = make_utxo(tx_hash="01" * 32)
        kept = make_utxo(tx_hash="02" * 32)
        await ledger.upsert([spent, kept])

        new = make_utxo(tx_hash="03" * 32, amount=777)
        result = await ledger.reconcile(WALLET_ID, ADDRESS, [kept, new])

        assert {u.tx_hash for u in result} == {"02" * 32, "03" * 32}
        assert result == await ledger.query_by_address(WALLET_ID, ADDRESS)

    @pytest.mark.asyncio
    async def test_empty_fresh_set_clears_address(self, ledger: UTXOLedger) -> None:
        await ledger.upsert([make_utxo(), make_utxo(address=OTHER_ADDRESS, tx_hash="cd" * 32)])

        result = await ledger.reconcile(WALLET_ID, ADDRESS, [])

        assert result == []
        assert len(await ledger.query_by_address(WALLET_ID, OTHER_ADDRESS)) == 1

    @pytest.mark.asyncio
    async def test_reconcile_is_idempotent(self, ledger: UTXOLedger) -> None:
        fresh = [make_utxo(tx_pos=0), make_utxo(tx_pos=1)]

        first = await ledger.reconcile(WALLET_ID, ADDRESS, fresh)
        second = await ledger.reconcile(WALLET_ID, ADDRESS, fresh)

        assert first == second
        assert len(second) == 2


class TestFailures:
    @pytest.mark.asyncio
    async def test_failed_batch_rolls_back(
        self, ledger: UTXOLedger, store: PersistentStore
    ) -> None:
        """A failing row aborts the whole batch."""
        store.get_handle().execute(
            "CREATE TRIGGER reject_pos BEFORE INSERT ON UTXOs WHEN NEW.tx_pos = 99 "
            "BEGIN SELECT RAISE(ABORT, 'boom'); END"
        )

        with pytest.raises(PersistenceError):
            await ledger.upsert([make_utxo(tx_pos=0), make_utxo(tx_pos=1), make_utxo(tx_pos=99)])

        assert await ledger.query_by_wallet(WALLET_ID) == []

    @pytest.mark.asyncio
    async def test_read_failure_is_empty(
        self, ledger: UTXOLedger, store: PersistentStore
    ) -> None:
        await ledger.upsert([make_utxo()])
        store.get_handle().execute("DROP TABLE UTXOs")

        assert await ledger.query_by_address(WALLET_ID, ADDRESS) == []
        assert await ledger.query_by_wallet(WALLET_ID) == []


class TestAddressListing:
    @pytest.mark.asyncio
    async def test_list_addresses_unions_sources(
        self,
        ledger: UTXOLedger,
        directory: AddressDirectory,
        key_manager: StoreKeyManager,
    ) -> None:
        await ledger.upsert([make_utxo(address=OTHER_ADDRESS)])
        await directory.register_address(
            AddressRecord(wallet_id=WALLET_ID, address="bitcoincash:registered")
        )
        await ledger.upsert([make_utxo(address=ADDRESS, tx_hash="cd" * 32)])

        addresses = await ledger.list_addresses(WALLET_ID)

        assert addresses == sorted({ADDRESS, OTHER_ADDRESS, "bitcoincash:registered"})

    @pytest.mark.asyncio
    async def test_split_by_token(self, ledger: UTXOLedger) -> None:
        token = Token(category=CATEGORY, amount=10)
        await ledger.upsert(
            [
                make_utxo(tx_pos=0),
                make_utxo(tx_pos=1, token=token),
                make_utxo(address=OTHER_ADDRESS, tx_hash="cd" * 32),
            ]
        )

        plain, tokens = await ledger.split_by_token(WALLET_ID, [ADDRESS, OTHER_ADDRESS])

        assert [u.tx_pos for u in plain[ADDRESS]] == [0]
        assert [u.tx_pos for u in tokens[ADDRESS]] == [1]
        assert len(plain[OTHER_ADDRESS]) == 1
        assert tokens[OTHER_ADDRESS] == []


class TestUTXOSyncService:
    @pytest.mark.asyncio
    async def test_sync_address(
        self,
        ledger: UTXOLedger,
        directory: AddressDirectory,
        key_manager: StoreKeyManager,
        backend: AsyncMock,
    ) -> None:
        await ledger.upsert([make_utxo(tx_hash="01" * 32)])
        backend.get_utxos.return_value = [
            NetworkUTXO(tx_hash="02" * 32, tx_pos=0, value=5000, height=810_000),
            NetworkUTXO(
                tx_hash="03" * 32,
                tx_pos=2,
                value=1000,
                token=Token(category=CATEGORY, amount=42),
            ),
        ]
        service = UTXOSyncService(ledger, directory, backend)

        result = await service.sync_address(WALLET_ID, ADDRESS)

        backend.get_utxos.assert_awaited_once_with(ADDRESS)
        assert [u.tx_hash for u in result] == ["02" * 32, "03" * 32]
        assert all(u.token_address == TOKEN_ADDRESS for u in result)
        assert result[1].token == Token(category=CATEGORY, amount=42)

    @pytest.mark.asyncio
    async def test_network_failure_keeps_ledger(
        self, ledger: UTXOLedger, directory: AddressDirectory, backend: AsyncMock
    ) -> None:
        await ledger.upsert([make_utxo()])
        backend.get_utxos.side_effect = ConnectionError("server unreachable")
        service = UTXOSyncService(ledger, directory, backend)

        assert await service.sync_address(WALLET_ID, ADDRESS) == []
        assert len(await ledger.query_by_address(WALLET_ID, ADDRESS)) == 1

    @pytest.mark.asyncio
    async def test_sync_wallet(
        self,
        ledger: UTXOLedger,
        directory: AddressDirectory,
        key_manager: StoreKeyManager,
        backend: AsyncMock,
    ) -> None:
        backend.get_utxos.return_value = [NetworkUTXO(tx_hash="02" * 32, tx_pos=0, value=5000)]
        service = UTXOSyncService(ledger, directory, backend, prefix="bitcoincash")

        result = await service.sync_wallet(WALLET_ID)

        assert list(result) == [ADDRESS]
        assert result[ADDRESS][0].amount == 5000
        assert result[ADDRESS][0].prefix == "bitcoincash"
