#!/usr/bin/env python3
"""Data models for the interop relayer.

This module provides immutable data classes for the records the relay flow
observes on chain (log proofs, outbound logs) and the payloads it carries
from the source chain to the destination chain (bundles, inclusion proofs).
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hexbytes import HexBytes
from web3 import Web3

from .exceptions import BundleDecodeError, MissingArtifactError
from .utils.encoding import address_from_word, to_bytes_safe

INTEROP_BUNDLE_VERSION = b'\x01'
INTEROP_CALL_VERSION = b'\x01'


class RelayState(Enum):
    """Stages of a single relay run."""
    IDLE = "idle"
    SENT = "sent"
    FINALIZED = "finalized"
    PROOF_OBTAINED = "proof_obtained"
    ROOT_VERIFIED = "root_verified"
    EXECUTED = "executed"
    FAILED = "failed"


def require_field(data: Mapping[str, Any], key: str, what: str) -> Any:
    """Return data[key], raising MissingArtifactError when it is absent or None."""
    if key not in data or data[key] is None:
        raise MissingArtifactError(f"{what} is missing field '{key}'")
    return data[key]


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 16) if value.startswith('0x') else int(value)
    return int(value)


def _fixed_width(value: bytes, size: int, what: str) -> bytes:
    if len(value) != size:
        raise BundleDecodeError(f"{what} must be exactly {size} byte(s), got {len(value)}")
    return value


@dataclass(frozen=True, slots=True)
class LogProof:
    """Inclusion proof of one outbound log, as served by the source chain.

    A proof is only meaningful together with the (transaction hash, log index)
    pair it was requested for.

    Attributes:
        batch_number: Batch the log was included in
        id: Index of the log within the batch
        root: Root the proof path hashes up to
        proof: Ordered proof path
    """

    batch_number: int
    id: int
    root: bytes
    proof: tuple[bytes, ...] = ()

    @classmethod
    def from_rpc(cls, data: Mapping[str, Any]) -> "LogProof":
        """Build a proof from a log proof RPC result."""
        return cls(
            batch_number=_to_int(require_field(data, 'batch_number', "Log proof")),
            id=_to_int(require_field(data, 'id', "Log proof")),
            root=to_bytes_safe(require_field(data, 'root', "Log proof")),
            proof=tuple(to_bytes_safe(node) for node in data.get('proof') or []),
        )

    @property
    def root_hex(self) -> str:
        return Web3.to_hex(self.root)

    def __str__(self) -> str:
        return (
            f"LogProof(batch={self.batch_number}, id={self.id}, "
            f"root={self.root_hex[:10]}..., nodes={len(self.proof)})"
        )


@dataclass(frozen=True, slots=True)
class L2ToL1Log:
    """Outbound log entry from a source-chain receipt.

    Attributes:
        sender: Contract that emitted the log (the messenger)
        key: 32-byte word holding the address that sent the message
        value: 32-byte word holding the message hash
    """

    sender: str
    key: bytes
    value: bytes

    @classmethod
    def from_receipt_entry(cls, entry: Mapping[str, Any]) -> "L2ToL1Log":
        return cls(
            sender=Web3.to_checksum_address(require_field(entry, 'sender', "Outbound log")),
            key=to_bytes_safe(entry.get('key') or b''),
            value=to_bytes_safe(entry.get('value') or b''),
        )

    @property
    def message_sender(self) -> str:
        """Address that called the messenger; falls back to the log sender."""
        if self.key:
            return address_from_word(self.key)
        return self.sender


@dataclass(frozen=True, slots=True)
class L2Message:
    """Message whose inclusion is proven on the destination chain."""

    tx_number_in_batch: int
    sender: str
    data: bytes

    def to_contract_arg(self) -> dict[str, Any]:
        return {
            'txNumberInBatch': self.tx_number_in_batch,
            'sender': Web3.to_checksum_address(self.sender),
            'data': self.data,
        }


@dataclass(frozen=True, slots=True)
class MessageInclusionProof:
    """Full proof record submitted to the destination chain."""

    chain_id: int
    l1_batch_number: int
    l2_message_index: int
    message: L2Message
    proof: tuple[bytes, ...]

    def to_contract_arg(self) -> dict[str, Any]:
        return {
            'chainId': self.chain_id,
            'l1BatchNumber': self.l1_batch_number,
            'l2MessageIndex': self.l2_message_index,
            'message': self.message.to_contract_arg(),
            'proof': list(self.proof),
        }


@dataclass(frozen=True, slots=True)
class InteropCall:
    """One call carried inside a bundle.

    Attributes:
        to: Target contract on the destination chain
        from_address: Original caller on the source chain
        data: Call data
        value: Native value forwarded with the call
        shadow_account: Whether the call executes through the caller's shadow account
        version: Call format tag
    """

    to: str
    from_address: str
    data: bytes = b''
    value: int = 0
    shadow_account: bool = False
    version: bytes = INTEROP_CALL_VERSION

    def __post_init__(self) -> None:
        object.__setattr__(self, 'to', Web3.to_checksum_address(self.to))
        object.__setattr__(self, 'from_address', Web3.to_checksum_address(self.from_address))
        object.__setattr__(self, 'data', to_bytes_safe(self.data))
        object.__setattr__(self, 'version', _fixed_width(to_bytes_safe(self.version), 1, "Call version"))


@dataclass(frozen=True, slots=True)
class BundleAttributes:
    """Addressing attributes of a bundle (who may execute and unbundle it)."""

    execution_address: bytes = b''
    unbundler_address: bytes = b''

    def __post_init__(self) -> None:
        object.__setattr__(self, 'execution_address', to_bytes_safe(self.execution_address))
        object.__setattr__(self, 'unbundler_address', to_bytes_safe(self.unbundler_address))


@dataclass(frozen=True, slots=True)
class InteropBundle:
    """Versioned payload of calls transported from source to destination.

    Constructed once from the source-chain emission and never mutated, so the
    destination verifies exactly the bytes that were committed.
    The salt is a 32-byte word and the version a single byte; other widths
    raise BundleDecodeError.
    """

    source_chain_id: int
    destination_chain_id: int
    salt: bytes
    calls: tuple[InteropCall, ...] = ()
    attributes: BundleAttributes = field(default_factory=BundleAttributes)
    version: bytes = INTEROP_BUNDLE_VERSION

    def __post_init__(self) -> None:
        object.__setattr__(self, 'salt', _fixed_width(to_bytes_safe(self.salt), 32, "Bundle salt"))
        object.__setattr__(self, 'version', _fixed_width(to_bytes_safe(self.version), 1, "Bundle version"))
        object.__setattr__(self, 'calls', tuple(self.calls))

    def __str__(self) -> str:
        return (
            f"InteropBundle({self.source_chain_id} -> {self.destination_chain_id}, "
            f"salt={Web3.to_hex(self.salt)[:10]}..., calls={len(self.calls)})"
        )


@dataclass(frozen=True, slots=True)
class RelayResult:
    """Outcome of one completed relay run."""

    state: RelayState
    send_tx_hash: str
    log_proof: LogProof
    proof: MessageInclusionProof
    execute_tx_hash: str | None = None
    included: bool | None = None
    bundle: InteropBundle | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "state": self.state.value,
            "send_tx_hash": self.send_tx_hash,
            "execute_tx_hash": self.execute_tx_hash,
            "included": self.included,
            "batch_number": self.log_proof.batch_number,
            "message_index": self.log_proof.id,
            "root": self.log_proof.root_hex,
        }


def tx_hash_hex(tx_hash: HexBytes | bytes | str) -> str:
    """Render a transaction hash as a 0x-prefixed hex string."""
    return Web3.to_hex(to_bytes_safe(tx_hash))
