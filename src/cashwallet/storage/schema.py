"""
Database schema migrations.

Migration N brings the schema from version N-1 to N. Every migration must be
idempotent so an interrupted upgrade can simply be re-run.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

Migration = Callable[[sqlite3.Connection], None]


def create_core_tables(db: sqlite3.Connection) -> None:
    db.executescript(
        """
        CREATE TABLE IF NOT EXISTS wallets (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            wallet_name TEXT NOT NULL,
            mnemonic TEXT NOT NULL DEFAULT '',
            passphrase TEXT NOT NULL DEFAULT '',
            balance INTEGER NOT NULL DEFAULT 0,
            networkType TEXT NOT NULL DEFAULT 'mainnet'
        );

        CREATE TABLE IF NOT EXISTS keys (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            wallet_id INTEGER NOT NULL,
            public_key BLOB,
            private_key BLOB NOT NULL,
            address TEXT NOT NULL,
            token_address TEXT,
            pubkey_hash BLOB,
            account_index INTEGER NOT NULL DEFAULT 0,
            change_index INTEGER NOT NULL DEFAULT 0,
            address_index INTEGER NOT NULL DEFAULT 0,
            UNIQUE(wallet_id, address),
            FOREIGN KEY(wallet_id) REFERENCES wallets(id)
        );

        CREATE TABLE IF NOT EXISTS addresses (
            wallet_id INTEGER NOT NULL,
            address TEXT NOT NULL,
            balance INTEGER NOT NULL DEFAULT 0,
            hd_index INTEGER NOT NULL DEFAULT 0,
            change_index INTEGER NOT NULL DEFAULT 0,
            prefix TEXT NOT NULL DEFAULT 'unknown',
            FOREIGN KEY(wallet_id) REFERENCES wallets(id)
        );

        CREATE TABLE IF NOT EXISTS UTXOs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            wallet_id INTEGER NOT NULL,
            address TEXT NOT NULL,
            token_address TEXT,
            height INTEGER NOT NULL DEFAULT 0,
            tx_hash TEXT NOT NULL,
            tx_pos INTEGER NOT NULL,
            amount INTEGER NOT NULL,
            prefix TEXT NOT NULL DEFAULT 'unknown',
            token TEXT,
            UNIQUE(wallet_id, tx_hash, tx_pos),
            FOREIGN KEY(wallet_id) REFERENCES wallets(id)
        );

        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            wallet_id INTEGER NOT NULL,
            tx_hash TEXT NOT NULL,
            height INTEGER NOT NULL DEFAULT 0,
            timestamp TEXT NOT NULL,
            amount INTEGER NOT NULL DEFAULT 0,
            UNIQUE(wallet_id, tx_hash),
            FOREIGN KEY(wallet_id) REFERENCES wallets(id)
        );

        CREATE TABLE IF NOT EXISTS cashscript_artifacts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            contract_name TEXT NOT NULL UNIQUE,
            constructor_inputs TEXT NOT NULL,
            abi TEXT NOT NULL,
            bytecode TEXT NOT NULL,
            source TEXT NOT NULL,
            compiler_name TEXT,
            compiler_version TEXT,
            updated_at TEXT
        );

        CREATE TABLE IF NOT EXISTS instantiated_contracts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            contract_name TEXT NOT NULL,
            address TEXT NOT NULL UNIQUE,
            token_address TEXT,
            opcount INTEGER,
            bytesize INTEGER,
            bytecode TEXT,
            redeem_script TEXT,
            unlock TEXT,
            abi TEXT,
            artifact TEXT,
            constructor_args TEXT,
            balance INTEGER NOT NULL DEFAULT 0,
            utxos TEXT,
            updated_at TEXT
        );
        """
    )


def create_token_metadata_tables(db: sqlite3.Connection) -> None:
    db.executescript(
        """
        CREATE TABLE IF NOT EXISTS bcmr (
            authbase TEXT PRIMARY KEY,
            registryUri TEXT NOT NULL,
            lastFetch TEXT NOT NULL,
            registryHash TEXT NOT NULL,
            registryData TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS bcmr_tokens (
            category TEXT PRIMARY KEY,
            authbase TEXT NOT NULL,
            FOREIGN KEY(authbase) REFERENCES bcmr(authbase)
        );

        CREATE TABLE IF NOT EXISTS bcmr_metadata (
            category TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            decimals INTEGER NOT NULL,
            symbol TEXT NOT NULL,
            is_nft BOOLEAN NOT NULL,
            nfts TEXT,
            uris TEXT,
            extensions TEXT,
            FOREIGN KEY(category) REFERENCES bcmr_tokens(category)
        );
        """
    )


MIGRATIONS: list[Migration] = [
    create_core_tables,
    create_token_metadata_tables,
]

# Dropped on a full wallet wipe, dependents first
DOMAIN_TABLES: tuple[str, ...] = (
    "bcmr_metadata",
    "bcmr_tokens",
    "bcmr",
    "instantiated_contracts",
    "cashscript_artifacts",
    "transactions",
    "UTXOs",
    "addresses",
    "keys",
    "wallets",
)

TARGET_VERSION = len(MIGRATIONS)
