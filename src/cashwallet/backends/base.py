"""
Base network backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from cashwallet.models import Token, TransactionHistoryItem


@dataclass
class NetworkUTXO:
    """An unspent output as reported by an Electrum-style server."""

    tx_hash: str
    tx_pos: int
    value: int
    height: int = 0
    token: Token | None = None


class NetworkBackend(ABC):
    """
    Abstract network backend interface.
    Implementations talk to an indexing server (Electrum/Fulcrum protocol);
    the wallet core only depends on this interface.
    """

    @abstractmethod
    async def get_utxos(self, address: str) -> list[NetworkUTXO]:
        """Get unspent outputs for an address"""

    @abstractmethod
    async def get_transaction_history(self, address: str) -> list[TransactionHistoryItem]:
        """Get confirmed and mempool transaction history for an address"""

    @abstractmethod
    async def get_block_height(self) -> int:
        """Get current blockchain height"""

    @abstractmethod
    async def send_raw_transaction(self, tx_hex: str) -> str:
        """Broadcast transaction, returns txid"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
