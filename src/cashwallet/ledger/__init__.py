"""
Wallet ledgers: addresses, UTXOs and transaction history.
"""

from cashwallet.ledger.addresses import AddressDirectory
from cashwallet.ledger.history import TransactionHistoryLedger
from cashwallet.ledger.utxos import UTXOLedger, UTXOSyncService

__all__ = [
    "AddressDirectory",
    "TransactionHistoryLedger",
    "UTXOLedger",
    "UTXOSyncService",
]
