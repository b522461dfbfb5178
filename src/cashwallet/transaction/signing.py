"""
Bitcoin Cash transaction signing for P2PKH and contract inputs.

Uses the BIP143-style fork-id signature hash (SIGHASH_ALL | SIGHASH_FORKID),
extended by CashTokens: the token prefix of the spent output is committed to
between the outpoint and the covered bytecode.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass

from coincurve import PrivateKey

from cashwallet.constants import SIGHASH_ALL, SIGHASH_FORKID
from cashwallet.transaction.encoding import (
    Transaction,
    encode_data_push,
    encode_token_prefix,
    hash256,
    serialize_outpoint,
    serialize_output,
    varint,
)

SIGHASH_ALL_FORKID = SIGHASH_ALL | SIGHASH_FORKID


class TransactionSigningError(Exception):
    pass


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def public_key_from_private(private_key: bytes) -> bytes:
    """Compressed public key for a 32-byte secret."""
    try:
        return PrivateKey(private_key).public_key.format(compressed=True)
    except ValueError as e:
        raise TransactionSigningError(f"Invalid private key: {e}") from e


def p2pkh_locking_bytecode(public_key: bytes) -> bytes:
    # OP_DUP OP_HASH160 PUSH20 <pkh> OP_EQUALVERIFY OP_CHECKSIG
    return b"\x76\xa9\x14" + hash160(public_key) + b"\x88\xac"


def compute_sighash(
    tx: Transaction,
    input_index: int,
    covered_bytecode: bytes,
    sighash_type: int = SIGHASH_ALL_FORKID,
) -> bytes:
    """Signature hash of one input."""
    try:
        if input_index >= len(tx.inputs):
            raise TransactionSigningError("Input index out of range")

        hash_prevouts = hash256(
            b"".join(serialize_outpoint(inp.txid, inp.vout) for inp in tx.inputs)
        )
        hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
        hash_outputs = hash256(b"".join(serialize_output(out) for out in tx.outputs))

        target = tx.inputs[input_index]

        preimage = (
            struct.pack("<I", tx.version)
            + hash_prevouts
            + hash_sequence
            + serialize_outpoint(target.txid, target.vout)
            + encode_token_prefix(target.token)
            + varint(len(covered_bytecode))
            + covered_bytecode
            + struct.pack("<Q", target.value)
            + struct.pack("<I", target.sequence)
            + hash_outputs
            + struct.pack("<I", tx.locktime)
            + struct.pack("<I", sighash_type)
        )

        return hash256(preimage)

    except TransactionSigningError:
        raise
    except Exception as e:
        raise TransactionSigningError(f"Failed to compute sighash: {e}") from e


def sign_input(
    tx: Transaction,
    input_index: int,
    covered_bytecode: bytes,
    private_key: bytes,
    sighash_type: int = SIGHASH_ALL_FORKID,
) -> bytes:
    """
    Sign one input with ECDSA.

    Returns:
        DER-encoded signature with the sighash type byte appended
    """
    sighash = compute_sighash(tx, input_index, covered_bytecode, sighash_type)
    try:
        # sighash is already SHA256d, skip coincurve's own hashing
        signature = PrivateKey(private_key).sign(sighash, hasher=None)
    except ValueError as e:
        raise TransactionSigningError(f"Failed to sign input {input_index}: {e}") from e
    return signature + bytes([sighash_type])


def p2pkh_unlocking_bytecode(signature: bytes, public_key: bytes) -> bytes:
    return encode_data_push(signature) + encode_data_push(public_key)


@dataclass
class SigningContext:
    """What an unlocker sees when it produces its unlocking bytecode."""

    transaction: Transaction
    input_index: int

    def sign(self, private_key: bytes, covered_bytecode: bytes) -> bytes:
        return sign_input(self.transaction, self.input_index, covered_bytecode, private_key)
