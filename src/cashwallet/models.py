"""
Wallet data models using Pydantic for validation and serialization.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

NFTCapability = Literal["none", "mutable", "minting"]


class NFTData(BaseModel):
    capability: NFTCapability
    commitment: str = ""


class Token(BaseModel):
    """
    CashToken data carried by an output.

    A fungible token has ``amount`` and no ``nft``; a non-fungible token has
    ``nft``. Electrum servers report pure NFTs with ``amount == 0``, so a zero
    amount next to ``nft`` is accepted and means "no fungible amount".
    """

    category: str
    amount: int | None = Field(default=None, ge=0)
    nft: NFTData | None = None

    @model_validator(mode="after")
    def check_token_kind(self) -> Token:
        if self.nft is None and self.amount is None:
            raise ValueError("token must carry a fungible amount or NFT data")
        if self.nft is not None and self.amount:
            raise ValueError("token cannot be both fungible and non-fungible")
        return self

    @property
    def is_nft(self) -> bool:
        return self.nft is not None

    @property
    def fungible_amount(self) -> int:
        return self.amount or 0

    def to_json(self) -> str:
        """Textual encoding used in the UTXOs table."""
        return self.model_dump_json(exclude_none=True)


class UTXORecord(BaseModel):
    """An unspent output owned by a wallet, optionally bound to a contract."""

    model_config = ConfigDict(populate_by_name=True)

    wallet_id: int
    address: str
    token_address: str | None = None
    height: int = 0
    tx_hash: str
    tx_pos: int = Field(ge=0)
    amount: int = Field(ge=0)
    prefix: str = "unknown"
    token: Token | None = None

    # Contract binding (never persisted in the UTXOs table)
    contract_name: str | None = None
    abi: list[dict[str, Any]] | None = None
    contract_function: str | None = None
    contract_function_inputs: dict[str, Any] | None = None

    # Pre-fetched signing key, skips the key manager lookup when set
    private_key: bytes | None = Field(default=None, repr=False, exclude=True)

    @property
    def key(self) -> tuple[int, str, int]:
        return (self.wallet_id, self.tx_hash, self.tx_pos)

    @property
    def outpoint(self) -> str:
        return f"{self.tx_hash}:{self.tx_pos}"

    @property
    def is_genesis_candidate(self) -> bool:
        """Output 0 without tokens: its tx_hash can become a new token category."""
        return self.tx_pos == 0 and self.token is None

    @property
    def has_contract_binding(self) -> bool:
        return bool(self.contract_name) and self.abi is not None


class AddressRecord(BaseModel):
    wallet_id: int
    address: str
    token_address: str | None = None
    balance: int = 0
    hd_index: int = 0
    change_index: int = 0
    prefix: str = "unknown"


class KeyRecord(BaseModel):
    wallet_id: int
    address: str
    token_address: str | None = None
    public_key: bytes | None = None
    private_key: bytes = Field(repr=False)
    account_index: int = 0
    change_index: int = 0
    address_index: int = 0


class TransactionOutput(BaseModel):
    """A value output, optionally carrying a token."""

    recipient_address: str
    amount: int = Field(default=0, ge=0)
    token: Token | None = None


class OpReturnOutput(BaseModel):
    """
    Data-carrier output.

    Each chunk is either ``0x``-prefixed hex or UTF-8 text.
    """

    op_return: list[str]

    @property
    def amount(self) -> int:
        return 0


OutputSpec = TransactionOutput | OpReturnOutput


class TransactionHistoryItem(BaseModel):
    tx_hash: str
    height: int = 0


class BuildResult(BaseModel):
    """Outcome of a transaction build. ``error_msg`` is empty on success."""

    bytecode_size: int = 0
    final_transaction: str = ""
    final_outputs: list[OutputSpec] = Field(default_factory=list)
    error_msg: str = ""

    @property
    def ok(self) -> bool:
        return not self.error_msg


class SendResult(BaseModel):
    txid: str | None = None
    error_message: str | None = None
