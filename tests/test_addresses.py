"""
Tests for the address directory and the store-backed key manager.
"""

from __future__ import annotations

import pytest

from cashwallet.keys import StoreKeyManager
from cashwallet.ledger.addresses import AddressDirectory
from cashwallet.models import AddressRecord, KeyRecord
from cashwallet.storage.store import PersistentStore
from tests.conftest import (
    ADDRESS,
    OTHER_ADDRESS,
    OTHER_TOKEN_ADDRESS,
    PRIVATE_KEY,
    TOKEN_ADDRESS,
    WALLET_ID,
)


class TestAddressDirectory:
    @pytest.mark.asyncio
    async def test_resolve_known(
        self, directory: AddressDirectory, key_manager: StoreKeyManager
    ) -> None:
        assert await directory.resolve(WALLET_ID, ADDRESS) == TOKEN_ADDRESS

    @pytest.mark.asyncio
    async def test_resolve_unknown(
        self, directory: AddressDirectory, key_manager: StoreKeyManager
    ) -> None:
        assert await directory.resolve(WALLET_ID, OTHER_ADDRESS) is None
        assert await directory.resolve(2, ADDRESS) is None

    @pytest.mark.asyncio
    async def test_resolve_without_token_address(
        self, directory: AddressDirectory, key_manager: StoreKeyManager
    ) -> None:
        await key_manager.create_keys(
            KeyRecord(wallet_id=WALLET_ID, address=OTHER_ADDRESS, private_key=b"\x02" * 32)
        )
        assert await directory.resolve(WALLET_ID, OTHER_ADDRESS) is None

    @pytest.mark.asyncio
    async def test_resolve_read_failure(
        self, directory: AddressDirectory, store: PersistentStore
    ) -> None:
        store.get_handle().execute("DROP TABLE keys")
        assert await directory.resolve(WALLET_ID, ADDRESS) is None

    @pytest.mark.asyncio
    async def test_list_token_addresses(
        self, directory: AddressDirectory, key_manager: StoreKeyManager
    ) -> None:
        await key_manager.create_keys(
            KeyRecord(
                wallet_id=WALLET_ID,
                address=OTHER_ADDRESS,
                token_address=OTHER_TOKEN_ADDRESS,
                private_key=b"\x02" * 32,
            )
        )

        assert await directory.list_token_addresses(WALLET_ID) == {
            ADDRESS: TOKEN_ADDRESS,
            OTHER_ADDRESS: OTHER_TOKEN_ADDRESS,
        }

    @pytest.mark.asyncio
    async def test_register_address(
        self, directory: AddressDirectory, store: PersistentStore
    ) -> None:
        record = AddressRecord(
            wallet_id=WALLET_ID, address=ADDRESS, hd_index=3, prefix="bitcoincash"
        )

        assert await directory.register_address(record) is True

        row = store.get_handle().execute("SELECT hd_index, prefix FROM addresses").fetchone()
        assert (row["hd_index"], row["prefix"]) == (3, "bitcoincash")


class TestStoreKeyManager:
    @pytest.mark.asyncio
    async def test_fetch_by_address(self, key_manager: StoreKeyManager) -> None:
        assert await key_manager.fetch_private_key(ADDRESS) == PRIVATE_KEY

    @pytest.mark.asyncio
    async def test_fetch_by_token_address(self, key_manager: StoreKeyManager) -> None:
        assert await key_manager.fetch_private_key(TOKEN_ADDRESS) == PRIVATE_KEY

    @pytest.mark.asyncio
    async def test_fetch_unknown(self, key_manager: StoreKeyManager) -> None:
        assert await key_manager.fetch_private_key(OTHER_ADDRESS) is None

    @pytest.mark.asyncio
    async def test_retrieve_keys(self, key_manager: StoreKeyManager) -> None:
        (record,) = await key_manager.retrieve_keys(WALLET_ID)

        assert record.address == ADDRESS
        assert record.token_address == TOKEN_ADDRESS
        assert record.private_key == PRIVATE_KEY
        assert record.public_key is not None and len(record.public_key) == 33
        assert await key_manager.retrieve_keys(2) == []

    @pytest.mark.asyncio
    async def test_create_keys_replaces(self, key_manager: StoreKeyManager) -> None:
        await key_manager.create_keys(
            KeyRecord(
                wallet_id=WALLET_ID,
                address=ADDRESS,
                token_address=TOKEN_ADDRESS,
                private_key=b"\x03" * 32,
                address_index=7,
            )
        )

        (record,) = await key_manager.retrieve_keys(WALLET_ID)
        assert record.private_key == b"\x03" * 32
        assert record.address_index == 7
