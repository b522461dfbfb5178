"""
Wallet error taxonomy.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for all cashwallet errors"""

    pass


class InitializationError(WalletError):
    """Raised when the persistent store is used before it was started"""

    pass


class PersistenceError(WalletError):
    """Raised when a write batch fails and was rolled back"""

    pass


class MissingKeyError(WalletError):
    """Raised when no private key is known for an input address"""

    pass


class MissingContractBindingError(WalletError):
    """Raised when a contract UTXO cannot be bound to an instance and function"""

    pass


class ValidationError(WalletError):
    """Raised for malformed output requests"""

    pass


class BuildError(WalletError):
    """Raised when transaction assembly fails"""

    pass


class BroadcastError(WalletError):
    """Raised when the network rejects a transaction"""

    pass
