"""
Bitcoin Cash transaction wire encoding.

Covers varints, outpoints, CashToken prefixes, OP_RETURN data carriers and
full (non-segwit) transaction serialization.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field

from cashwallet.constants import (
    DEFAULT_SEQUENCE,
    MAX_COMMITMENT_LENGTH,
    MAX_TOKEN_AMOUNT,
    NFT_CAPABILITIES,
    TOKEN_HAS_AMOUNT,
    TOKEN_HAS_COMMITMENT_LENGTH,
    TOKEN_HAS_NFT,
    TOKEN_PREFIX_BYTE,
    TX_VERSION,
)
from cashwallet.models import Token

OP_RETURN = 0x6A
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E


class EncodingError(ValueError):
    pass


@dataclass
class TxInput:
    """Transaction input with the data of the output it spends."""

    txid: str
    vout: int
    value: int
    locking_bytecode: bytes = b""
    token: Token | None = None
    unlocking_bytecode: bytes = b""
    sequence: int = DEFAULT_SEQUENCE


@dataclass
class TxOutput:
    """Transaction output."""

    locking_bytecode: bytes
    value: int
    token: Token | None = None


@dataclass
class Transaction:
    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    version: int = TX_VERSION
    locktime: int = 0


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint (CompactSize)."""
    if n < 0:
        raise EncodingError(f"Cannot encode negative varint: {n}")
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is in display format (big-endian), reversed on the wire
    txid_bytes = bytes.fromhex(txid)[::-1]
    if len(txid_bytes) != 32:
        raise EncodingError(f"Invalid txid: {txid}")
    return txid_bytes + struct.pack("<I", vout)


def encode_token_prefix(token: Token | None) -> bytes:
    """
    Encode the CashToken prefix placed in front of an output's locking bytecode.

    Layout: PREFIX_TOKEN | category (32, reversed) | bitfield
            | [commitment length + commitment] | [fungible amount varint]
    """
    if token is None:
        return b""

    category = bytes.fromhex(token.category)[::-1]
    if len(category) != 32:
        raise EncodingError(f"Invalid token category: {token.category}")

    bitfield = 0
    commitment = b""
    amount = token.fungible_amount

    if token.nft is not None:
        bitfield |= TOKEN_HAS_NFT | NFT_CAPABILITIES[token.nft.capability]
        commitment = bytes.fromhex(token.nft.commitment)
        if len(commitment) > MAX_COMMITMENT_LENGTH:
            raise EncodingError(f"NFT commitment exceeds {MAX_COMMITMENT_LENGTH} bytes")
        if commitment:
            bitfield |= TOKEN_HAS_COMMITMENT_LENGTH

    if amount:
        if amount > MAX_TOKEN_AMOUNT:
            raise EncodingError(f"Token amount out of range: {amount}")
        bitfield |= TOKEN_HAS_AMOUNT

    if not bitfield & (TOKEN_HAS_NFT | TOKEN_HAS_AMOUNT):
        raise EncodingError(f"Token {token.category} has neither NFT nor fungible amount")

    result = bytes([TOKEN_PREFIX_BYTE]) + category + bytes([bitfield])
    if commitment:
        result += varint(len(commitment)) + commitment
    if amount:
        result += varint(amount)
    return result


def encode_data_push(data: bytes) -> bytes:
    """Minimally encoded push of data."""
    n = len(data)
    if n == 0:
        return bytes([0x00])
    if n == 1 and 1 <= data[0] <= 16:
        # OP_1 .. OP_16
        return bytes([0x50 + data[0]])
    if n == 1 and data[0] == 0x81:
        # OP_1NEGATE
        return bytes([0x4F])
    if n <= 75:
        return bytes([n]) + data
    if n <= 0xFF:
        return bytes([OP_PUSHDATA1, n]) + data
    if n <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + struct.pack("<H", n) + data
    return bytes([OP_PUSHDATA4]) + struct.pack("<I", n) + data


def encode_op_return(chunks: list[str]) -> bytes:
    """
    Build OP_RETURN locking bytecode.

    Chunks starting with ``0x`` are hex, everything else is UTF-8 text.
    """
    script = bytes([OP_RETURN])
    for chunk in chunks:
        if chunk.startswith("0x"):
            data = bytes.fromhex(chunk[2:])
        else:
            data = chunk.encode("utf-8")
        script += encode_data_push(data)
    return script


def serialize_output(out: TxOutput) -> bytes:
    """Serialize a transaction output. The token prefix is part of the script field."""
    script = encode_token_prefix(out.token) + out.locking_bytecode
    return struct.pack("<Q", out.value) + varint(len(script)) + script


def serialize_input(inp: TxInput) -> bytes:
    result = serialize_outpoint(inp.txid, inp.vout)
    result += varint(len(inp.unlocking_bytecode))
    result += inp.unlocking_bytecode
    result += struct.pack("<I", inp.sequence)
    return result


def serialize_transaction(tx: Transaction) -> bytes:
    """Serialize transaction to bytes."""
    result = struct.pack("<I", tx.version)

    result += varint(len(tx.inputs))
    for inp in tx.inputs:
        result += serialize_input(inp)

    result += varint(len(tx.outputs))
    for out in tx.outputs:
        result += serialize_output(out)

    result += struct.pack("<I", tx.locktime)
    return result


def get_txid(tx_bytes: bytes) -> str:
    """Transaction id: double SHA256, displayed reversed."""
    return hash256(tx_bytes)[::-1].hex()
