"""
Test configuration for cashwallet tests.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from cashwallet.backends.base import NetworkBackend
from cashwallet.keys import StoreKeyManager
from cashwallet.ledger.addresses import AddressDirectory
from cashwallet.ledger.utxos import UTXOLedger
from cashwallet.models import KeyRecord, Token, UTXORecord
from cashwallet.storage.blob import MemoryByteStorage
from cashwallet.storage.store import PersistentStore
from cashwallet.transaction import cashaddr
from cashwallet.transaction.signing import hash160, public_key_from_private

WALLET_ID = 1

# Test key (not for production use!)
PRIVATE_KEY = bytes.fromhex("01" * 32)
CATEGORY = "c1" * 32
GENESIS_TX = "9a" * 32


def key_addresses(private_key: bytes) -> tuple[str, str]:
    """(address, token_address) for a private key."""
    pkh = hash160(public_key_from_private(private_key))
    return (
        cashaddr.encode("bitcoincash", cashaddr.TYPE_P2PKH, pkh),
        cashaddr.encode("bitcoincash", cashaddr.TYPE_P2PKH_TOKENS, pkh),
    )


ADDRESS, TOKEN_ADDRESS = key_addresses(PRIVATE_KEY)
OTHER_ADDRESS, OTHER_TOKEN_ADDRESS = key_addresses(bytes.fromhex("02" * 32))


def make_utxo(
    tx_hash: str = "ab" * 32,
    tx_pos: int = 0,
    amount: int = 10_000,
    address: str = ADDRESS,
    token: Token | None = None,
    **kwargs,
) -> UTXORecord:
    return UTXORecord(
        wallet_id=kwargs.pop("wallet_id", WALLET_ID),
        address=address,
        tx_hash=tx_hash,
        tx_pos=tx_pos,
        amount=amount,
        height=kwargs.pop("height", 800_000),
        prefix=kwargs.pop("prefix", "bitcoincash"),
        token=token,
        **kwargs,
    )


@pytest.fixture
def storage() -> MemoryByteStorage:
    return MemoryByteStorage()


@pytest_asyncio.fixture
async def store(storage: MemoryByteStorage) -> AsyncGenerator[PersistentStore]:
    store = PersistentStore(storage, snapshot_key="test", save_delay=0.01)
    await store.ensure_started()
    yield store
    await store.close()


@pytest.fixture
def ledger(store: PersistentStore) -> UTXOLedger:
    return UTXOLedger(store)


@pytest.fixture
def directory(store: PersistentStore) -> AddressDirectory:
    return AddressDirectory(store)


@pytest_asyncio.fixture
async def key_manager(store: PersistentStore) -> StoreKeyManager:
    manager = StoreKeyManager(store)
    await manager.create_keys(
        KeyRecord(
            wallet_id=WALLET_ID,
            address=ADDRESS,
            token_address=TOKEN_ADDRESS,
            public_key=public_key_from_private(PRIVATE_KEY),
            private_key=PRIVATE_KEY,
        )
    )
    return manager


@pytest.fixture
def backend() -> AsyncMock:
    mock = AsyncMock(spec=NetworkBackend)
    mock.get_block_height.return_value = 850_000
    mock.send_raw_transaction.return_value = "ff" * 32
    mock.get_utxos.return_value = []
    mock.get_transaction_history.return_value = []
    return mock
