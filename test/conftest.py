"""Shared fixtures for the interop relayer tests."""

from collections.abc import Mapping
from typing import Any

import pytest
from eth_abi import encode
from hexbytes import HexBytes
from web3 import Web3

from interop_relayer.config import PollPolicy
from interop_relayer.models import BundleAttributes, InteropBundle, InteropCall, LogProof
from interop_relayer.system_contracts import (
    INTEROP_BUNDLE_TYPE,
    L1_MESSENGER_ADDRESS,
    L2_INTEROP_CENTER_ADDRESS,
)
from interop_relayer.utils.bundle_codec import BundleCodec

GREET_ADDRESS = "0xe441CF0795aF14DdB9f7984Da85CD36DB1B8790d"
SENDER_ADDRESS = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"
ROOT_1 = "0x" + "r1".encode().hex() * 16
ROOT_2 = "0x" + "r2".encode().hex() * 16
ZERO_ROOT = "0x" + "00" * 32


def scripted(values: list[Any]):
    """Return a callable that replays values in order, repeating the last one.

    Exceptions in the script are raised instead of returned.
    """
    remaining = list(values)

    def next_value() -> Any:
        value = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        if isinstance(value, BaseException):
            raise value
        return value

    return next_value


class FakeEndpoint:
    """In-memory ChainEndpoint driven by scripted responses."""

    def __init__(
        self,
        chain_id: int,
        finalized: list[Any] | None = None,
        log_proofs: list[Any] | None = None,
        roots: dict[tuple[int, int], list[Any]] | None = None,
        receipts: dict[str, Mapping[str, Any]] | None = None,
        call_results: dict[str, Any] | None = None,
    ) -> None:
        self._chain_id = chain_id
        self._finalized = scripted(finalized or [0])
        self._log_proofs = scripted(log_proofs or [None])
        self._roots = {key: scripted(values) for key, values in (roots or {}).items()}
        self.receipts = receipts or {}
        self.call_results = call_results or {}

        self.block_queries: list[str | int] = []
        self.proof_queries: list[tuple[str, int]] = []
        self.root_queries: list[tuple[int, int]] = []
        self.calls: list[tuple[str, str, tuple]] = []
        self.sent: list[tuple[str, str, tuple, Any]] = []

    @property
    def chain_id(self) -> int:
        return self._chain_id

    def get_block(self, block_identifier):
        self.block_queries.append(block_identifier)
        return {"number": self._finalized()}

    def get_log_proof(self, tx_hash, log_index=0):
        self.proof_queries.append((tx_hash, log_index))
        return self._log_proofs()

    def call(self, address, abi, function_name, *args):
        if function_name == "interopRoots":
            key = (args[0], args[1])
            self.root_queries.append(key)
            return self._roots[key]() if key in self._roots else ZERO_ROOT
        self.calls.append((address, function_name, args))
        return self.call_results[function_name]

    def send_transaction(self, address, abi, function_name, *args, tx_params=None):
        self.sent.append((address, function_name, args, tx_params))
        return self.receipts[function_name]


def greeting_calldata(text: str) -> bytes:
    selector = bytes(Web3.keccak(text="setGreeting(string)"))[:4]
    return selector + encode(["string"], [text])


def address_word(address: str) -> str:
    return "0x" + "00" * 12 + Web3.to_bytes(hexstr=address).hex()


def bundle_sent_log(bundle: InteropBundle, emitter: str = L2_INTEROP_CENTER_ADDRESS) -> dict[str, Any]:
    data = encode(
        ["bytes32", "bytes32", INTEROP_BUNDLE_TYPE],
        [b"\x11" * 32, b"\x22" * 32, BundleCodec.to_abi_tuple(bundle)],
    )
    return {
        "address": emitter,
        "topics": [HexBytes(BundleCodec.BUNDLE_SENT_TOPIC)],
        "data": HexBytes(data),
    }


@pytest.fixture
def fast_policy() -> PollPolicy:
    return PollPolicy(interval=0.001, timeout=0.05)


@pytest.fixture
def sample_bundle() -> InteropBundle:
    return InteropBundle(
        source_chain_id=1,
        destination_chain_id=2,
        salt="0xabc" + "0" * 61,
        calls=(
            InteropCall(
                to=GREET_ADDRESS,
                from_address=SENDER_ADDRESS,
                data=greeting_calldata("hi"),
            ),
        ),
        attributes=BundleAttributes(
            execution_address=b"",
            unbundler_address=Web3.to_bytes(hexstr=SENDER_ADDRESS),
        ),
    )


@pytest.fixture
def sample_log_proof() -> LogProof:
    return LogProof(
        batch_number=7,
        id=0,
        root=Web3.to_bytes(hexstr=ROOT_1),
        proof=(b"\x01" * 32, b"\x02" * 32),
    )


@pytest.fixture
def bundle_receipt(sample_bundle) -> dict[str, Any]:
    message_data = BundleCodec.message_data(sample_bundle)
    return {
        "transactionHash": HexBytes("0x" + "aa" * 32),
        "blockNumber": 42,
        "transactionIndex": 3,
        "l1BatchTxIndex": 5,
        "status": 1,
        "logs": [bundle_sent_log(sample_bundle)],
        "l2ToL1Logs": [
            {
                "sender": L1_MESSENGER_ADDRESS,
                "key": address_word(L2_INTEROP_CENTER_ADDRESS),
                "value": HexBytes(Web3.keccak(message_data)),
            }
        ],
    }


@pytest.fixture
def execute_receipt() -> dict[str, Any]:
    return {
        "transactionHash": HexBytes("0x" + "bb" * 32),
        "blockNumber": 9,
        "status": 1,
        "logs": [],
    }
