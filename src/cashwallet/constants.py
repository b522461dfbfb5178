"""
Bitcoin Cash and wallet constants.

Dust and fee values follow what the wallet has always used:
- DUST: standard P2PKH dust limit, also the placeholder change value
- DEFAULT_FEE_RATE: flat 1 satoshi per serialized byte
"""

from __future__ import annotations

# Standard P2PKH dust limit (satoshis)
DUST = 546

# Fixed fee model: satoshis per byte of the serialized transaction
DEFAULT_FEE_RATE = 1

# Debounce window for durable snapshot writes (seconds)
DEFAULT_SAVE_DELAY = 0.5

# Name of the snapshot blob in durable byte storage
DEFAULT_SNAPSHOT_KEY = "OPTNDatabase"

# CashAddr prefixes per network
PREFIX_MAINNET = "bitcoincash"
PREFIX_TESTNET = "bchtest"

NETWORK_PREFIXES: dict[str, str] = {
    "mainnet": PREFIX_MAINNET,
    "chipnet": PREFIX_TESTNET,
    "testnet": PREFIX_TESTNET,
}

# Transaction serialization
TX_VERSION = 2
# Non-final sequence so that a height-based locktime is enforced
DEFAULT_SEQUENCE = 0xFFFFFFFE

SIGHASH_ALL = 0x01
SIGHASH_FORKID = 0x40

# CashTokens prefix
TOKEN_PREFIX_BYTE = 0xEF
TOKEN_HAS_AMOUNT = 0x10
TOKEN_HAS_NFT = 0x20
TOKEN_HAS_COMMITMENT_LENGTH = 0x40
MAX_COMMITMENT_LENGTH = 40
MAX_TOKEN_AMOUNT = 2**63 - 1

NFT_CAPABILITIES: dict[str, int] = {
    "none": 0x00,
    "mutable": 0x01,
    "minting": 0x02,
}

# Keywords in a contract function body that make its redeem script check
# the transaction locktime or input age
TIME_PREDICATE_KEYWORDS = ("tx.time", "tx.age", "this.age")
