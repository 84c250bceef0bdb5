"""
Byte-level helpers shared by the models and the bundle codec.

Chain responses hand back digests and payloads as HexBytes, raw bytes or
0x-prefixed strings depending on the provider; everything is normalised to
plain bytes before it is compared or encoded.
"""

from hexbytes import HexBytes
from web3 import Web3

INTEROP_ADDRESS_VERSION = b'\x00\x01'
EVM_CHAIN_TYPE = b'\x00\x00'


def to_bytes_safe(value: HexBytes | bytes | bytearray | str) -> bytes:
    """
    Safely convert value to bytes, handling HexBytes, bytes, and hex strings.

    Args:
        value: Value to convert (HexBytes, bytes, or hex string)

    Returns:
        Bytes representation
    """
    if isinstance(value, HexBytes):
        return bytes(value)
    elif isinstance(value, (bytes, bytearray)):
        return bytes(value)
    else:
        return Web3.to_bytes(hexstr=value)


def is_zero_digest(value: HexBytes | bytes | str | None) -> bool:
    """True for an absent value or a digest made only of zero bytes."""
    if value is None:
        return True
    raw = to_bytes_safe(value)
    return not any(raw)


def same_digest(left: HexBytes | bytes | str, right: HexBytes | bytes | str) -> bool:
    """Compare two digests by their bytes, so hex casing never matters."""
    return to_bytes_safe(left) == to_bytes_safe(right)


def address_from_word(word: HexBytes | bytes | str) -> str:
    """Extract the checksummed address held in the low 20 bytes of a 32-byte word."""
    raw = to_bytes_safe(word)
    if len(raw) < 20:
        raise ValueError(f"Word too short to hold an address: {Web3.to_hex(raw)}")
    return Web3.to_checksum_address(raw[-20:])


def encode_interop_address(chain_id: int, address: str) -> str:
    """
    Encode an EVM address on a given chain as an interop address.

    Layout: version (2 bytes) | chain type (2 bytes) | chain reference length
    (1 byte) | chain reference (big-endian, minimal) | address length (1 byte) |
    address (20 bytes).

    Args:
        chain_id: Chain the address lives on
        address: 20-byte EVM address

    Returns:
        0x-prefixed hex string of the encoded address
    """
    if chain_id <= 0:
        raise ValueError(f"Chain ID must be positive, got {chain_id}")

    chain_reference = chain_id.to_bytes((chain_id.bit_length() + 7) // 8, 'big')
    address_bytes = Web3.to_bytes(hexstr=Web3.to_checksum_address(address))

    encoded = (
        INTEROP_ADDRESS_VERSION
        + EVM_CHAIN_TYPE
        + bytes([len(chain_reference)])
        + chain_reference
        + bytes([len(address_bytes)])
        + address_bytes
    )
    return Web3.to_hex(encoded)
