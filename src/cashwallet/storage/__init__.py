"""
Durable storage: snapshot byte storage, schema migrations and the shared store.
"""

from cashwallet.storage.blob import ByteStorage, FileByteStorage, MemoryByteStorage
from cashwallet.storage.schema import DOMAIN_TABLES, MIGRATIONS, TARGET_VERSION
from cashwallet.storage.store import PersistentStore

__all__ = [
    "ByteStorage",
    "DOMAIN_TABLES",
    "FileByteStorage",
    "MIGRATIONS",
    "MemoryByteStorage",
    "PersistentStore",
    "TARGET_VERSION",
]
