"""
cashwallet - Coin ledger and transaction composer for Bitcoin Cash wallets

Tracks the UTXOs a wallet controls in a durable local store and assembles
them into fee-aware, signed transactions, including CashTokens (fungible
tokens and NFTs), token genesis and contract-locked inputs.
"""

__version__ = "0.1.0"
