"""
CashAddr address encoding.

Supports P2PKH, P2SH (20 and 32 byte hashes) and their token-aware variants.
"""

from __future__ import annotations

from dataclasses import dataclass

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"

# Address type bits (version byte high nibble >> 3)
TYPE_P2PKH = 0
TYPE_P2SH = 1
TYPE_P2PKH_TOKENS = 2
TYPE_P2SH_TOKENS = 3

# Version byte size bits -> hash length in bytes
HASH_SIZES = {0: 20, 1: 24, 2: 28, 3: 32, 4: 40, 5: 48, 6: 56, 7: 64}


class CashAddrError(ValueError):
    pass


@dataclass(frozen=True)
class DecodedAddress:
    prefix: str
    addr_type: int
    payload: bytes

    @property
    def is_p2sh(self) -> bool:
        return self.addr_type in (TYPE_P2SH, TYPE_P2SH_TOKENS)

    @property
    def token_aware(self) -> bool:
        return self.addr_type in (TYPE_P2PKH_TOKENS, TYPE_P2SH_TOKENS)


def polymod(values: list[int]) -> int:
    """CashAddr checksum polymod"""
    generators = [0x98F2BC8E61, 0x79B76D99E2, 0xF33E5FB3C4, 0xAE2EABE2A8, 0x1E4F43E470]
    chk = 1
    for v in values:
        top = chk >> 35
        chk = ((chk & 0x07FFFFFFFF) << 5) ^ v
        for i in range(5):
            if (top >> i) & 1:
                chk ^= generators[i]
    return chk ^ 1


def prefix_expand(prefix: str) -> list[int]:
    return [ord(x) & 0x1F for x in prefix] + [0]


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    """Convert between bit groups"""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        if value < 0 or value >> frombits:
            raise CashAddrError("Invalid value for bit conversion")
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise CashAddrError("Invalid padding")

    return ret


def create_checksum(prefix: str, data: list[int]) -> list[int]:
    mod = polymod(prefix_expand(prefix) + data + [0] * 8)
    return [(mod >> 5 * (7 - i)) & 0x1F for i in range(8)]


def encode(prefix: str, addr_type: int, payload: bytes) -> str:
    """Encode a hash as a CashAddr string with prefix."""
    sizes = {v: k for k, v in HASH_SIZES.items()}
    if len(payload) not in sizes:
        raise CashAddrError(f"Invalid hash length: {len(payload)}")
    version = (addr_type << 3) | sizes[len(payload)]
    data = convertbits(bytes([version]) + payload, 8, 5)
    combined = data + create_checksum(prefix, data)
    return prefix + ":" + "".join(CHARSET[d] for d in combined)


def decode(address: str, default_prefix: str = "bitcoincash") -> DecodedAddress:
    """Decode a CashAddr string. The prefix may be omitted."""
    if address.lower() != address and address.upper() != address:
        raise CashAddrError(f"Mixed case address: {address}")
    address = address.lower()

    if ":" in address:
        prefix, body = address.split(":", 1)
    else:
        prefix, body = default_prefix, address

    try:
        data = [CHARSET.index(c) for c in body]
    except ValueError as e:
        raise CashAddrError(f"Invalid character in address: {address}") from e

    if len(data) < 9 or polymod(prefix_expand(prefix) + data) != 0:
        raise CashAddrError(f"Invalid checksum: {address}")

    decoded = bytes(convertbits(data[:-8], 5, 8, pad=False))
    version, payload = decoded[0], decoded[1:]
    if version & 0x80:
        raise CashAddrError(f"Reserved version bit set: {address}")

    size = HASH_SIZES[version & 0x07]
    if len(payload) != size:
        raise CashAddrError(f"Hash length {len(payload)} does not match version byte")

    return DecodedAddress(prefix=prefix, addr_type=(version >> 3) & 0x0F, payload=payload)


def to_token_address(address: str) -> str:
    """Convert an address to its token-aware variant."""
    decoded = decode(address)
    new_type = TYPE_P2SH_TOKENS if decoded.is_p2sh else TYPE_P2PKH_TOKENS
    return encode(decoded.prefix, new_type, decoded.payload)


def address_to_locking_bytecode(address: str) -> bytes:
    """
    Convert a CashAddr address to locking bytecode.

    - P2PKH: OP_DUP OP_HASH160 <20> OP_EQUALVERIFY OP_CHECKSIG
    - P2SH20: OP_HASH160 <20> OP_EQUAL
    - P2SH32: OP_HASH256 <32> OP_EQUAL
    """
    decoded = decode(address)
    payload = decoded.payload

    if not decoded.is_p2sh:
        if len(payload) != 20:
            raise CashAddrError(f"Unsupported P2PKH hash length: {len(payload)}")
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])

    if len(payload) == 20:
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])
    if len(payload) == 32:
        return bytes([0xAA, 0x20]) + payload + bytes([0x87])

    raise CashAddrError(f"Unsupported P2SH hash length: {len(payload)}")
