"""
Builds wallet services from settings.
"""

from __future__ import annotations

from cashwallet.backends.base import NetworkBackend
from cashwallet.config import WalletSettings
from cashwallet.contracts import ContractProvider
from cashwallet.keys import KeyManager
from cashwallet.ledger.addresses import AddressDirectory
from cashwallet.ledger.utxos import UTXOLedger, UTXOSyncService
from cashwallet.storage.blob import FileByteStorage
from cashwallet.storage.store import PersistentStore
from cashwallet.transaction.composer import TransactionComposer


def create_store(settings: WalletSettings) -> PersistentStore:
    return PersistentStore(
        FileByteStorage(settings.data_dir),
        snapshot_key=settings.snapshot_key,
        save_delay=settings.save_delay,
    )


def create_sync_service(
    settings: WalletSettings, store: PersistentStore, backend: NetworkBackend
) -> UTXOSyncService:
    """UTXO sync that tags records with the network's address prefix."""
    return UTXOSyncService(
        UTXOLedger(store),
        AddressDirectory(store),
        backend,
        prefix=settings.prefix,
    )


def create_composer(
    settings: WalletSettings,
    store: PersistentStore,
    keys: KeyManager,
    backend: NetworkBackend,
    contracts: ContractProvider | None = None,
) -> TransactionComposer:
    """Composer using the configured fee rate and dust amount."""
    return TransactionComposer(
        keys=keys,
        backend=backend,
        directory=AddressDirectory(store),
        contracts=contracts,
        fee_rate=settings.fee_rate,
        dust_amount=settings.dust_amount,
    )
