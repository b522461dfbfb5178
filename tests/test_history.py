"""
Tests for the transaction history ledger.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from cashwallet.ledger.history import TransactionHistoryLedger
from cashwallet.models import TransactionHistoryItem
from cashwallet.storage.store import PersistentStore
from tests.conftest import ADDRESS, WALLET_ID


class TestTransactionHistoryLedger:
    @pytest.mark.asyncio
    async def test_fetch_and_store(self, store: PersistentStore, backend: AsyncMock) -> None:
        items = [
            TransactionHistoryItem(tx_hash="01" * 32, height=800_000),
            TransactionHistoryItem(tx_hash="02" * 32, height=0),
            TransactionHistoryItem(tx_hash="03" * 32, height=800_100),
        ]
        backend.get_transaction_history.return_value = items
        history = TransactionHistoryLedger(store, backend)

        assert await history.fetch_and_store(WALLET_ID, ADDRESS) == items

        stored = await history.list_history(WALLET_ID)
        assert [item.tx_hash for item in stored] == ["02" * 32, "03" * 32, "01" * 32]

    @pytest.mark.asyncio
    async def test_refetch_updates_height(self, store: PersistentStore, backend: AsyncMock) -> None:
        """A mempool transaction gets its height once it confirms."""
        history = TransactionHistoryLedger(store, backend)
        backend.get_transaction_history.return_value = [
            TransactionHistoryItem(tx_hash="01" * 32, height=0)
        ]
        await history.fetch_and_store(WALLET_ID, ADDRESS)

        backend.get_transaction_history.return_value = [
            TransactionHistoryItem(tx_hash="01" * 32, height=800_200)
        ]
        await history.fetch_and_store(WALLET_ID, ADDRESS)

        assert await history.list_history(WALLET_ID) == [
            TransactionHistoryItem(tx_hash="01" * 32, height=800_200)
        ]

    @pytest.mark.asyncio
    async def test_network_failure_returns_empty(
        self, store: PersistentStore, backend: AsyncMock
    ) -> None:
        backend.get_transaction_history.side_effect = TimeoutError("timed out")
        history = TransactionHistoryLedger(store, backend)

        assert await history.fetch_and_store(WALLET_ID, ADDRESS) == []
        assert await history.list_history(WALLET_ID) == []

    @pytest.mark.asyncio
    async def test_without_backend(self, store: PersistentStore) -> None:
        history = TransactionHistoryLedger(store)

        assert await history.fetch_and_store(WALLET_ID, ADDRESS) == []

    @pytest.mark.asyncio
    async def test_store_failure_returns_fetched(
        self, store: PersistentStore, backend: AsyncMock
    ) -> None:
        items = [TransactionHistoryItem(tx_hash="01" * 32, height=5)]
        backend.get_transaction_history.return_value = items
        store.get_handle().execute("DROP TABLE transactions")
        history = TransactionHistoryLedger(store, backend)

        assert await history.fetch_and_store(WALLET_ID, ADDRESS) == items
        assert await history.list_history(WALLET_ID) == []
