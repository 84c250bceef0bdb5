"""
Test suite for the interop relayer orchestration.
"""

import asyncio
import copy
from unittest.mock import patch

import pytest
from hexbytes import HexBytes
from web3 import Web3

from interop_relayer.config import PollPolicy, RelayerConfig, TxOverrides
from interop_relayer.exceptions import (
    InclusionRejectedError,
    IntegrityMismatchError,
    MissingArtifactError,
    RootNeverAppearedError,
)
from interop_relayer.models import LogProof, RelayState
from interop_relayer.relayer import InteropRelayer
from interop_relayer.system_contracts import (
    L1_MESSENGER_ADDRESS,
    L2_INTEROP_CENTER_ADDRESS,
    L2_INTEROP_HANDLER_ADDRESS,
    L2_MESSAGE_VERIFICATION_ADDRESS,
)
from interop_relayer.utils.bundle_codec import BundleCodec
from interop_relayer.utils.encoding import encode_interop_address

from conftest import (
    GREET_ADDRESS,
    ROOT_1,
    ROOT_2,
    SENDER_ADDRESS,
    ZERO_ROOT,
    FakeEndpoint,
    address_word,
    greeting_calldata,
)

POLICY = PollPolicy(interval=0.001, timeout=2)
TX_PARAMS = TxOverrides().as_tx_params()


def make_relayer(source, destination, policy=POLICY):
    return InteropRelayer(source, destination, poll_policy=policy)


@pytest.fixture
def source(bundle_receipt, sample_log_proof):
    return FakeEndpoint(
        chain_id=1,
        finalized=[40, 42],
        log_proofs=[None, sample_log_proof],
        receipts={"sendMessage": bundle_receipt},
    )


@pytest.fixture
def destination(execute_receipt):
    return FakeEndpoint(
        chain_id=2,
        roots={(1, 7): [ZERO_ROOT, ROOT_1]},
        receipts={"executeBundle": execute_receipt},
    )


async def relay_greeting(relayer):
    recipient = encode_interop_address(2, GREET_ADDRESS)
    return await relayer.relay_bundle(recipient, greeting_calldata("hi"))


class TestRelayBundle:
    """Bundle path: sendMessage on the source, executeBundle on the destination."""

    @pytest.mark.asyncio
    async def test_happy_path(self, source, destination, sample_bundle):
        relayer = make_relayer(source, destination)

        result = await relay_greeting(relayer)

        assert result.state == RelayState.EXECUTED
        assert relayer.history == [
            RelayState.IDLE,
            RelayState.SENT,
            RelayState.FINALIZED,
            RelayState.PROOF_OBTAINED,
            RelayState.ROOT_VERIFIED,
            RelayState.EXECUTED,
        ]
        assert result.send_tx_hash == "0x" + "aa" * 32
        assert result.execute_tx_hash == "0x" + "bb" * 32
        assert result.bundle == sample_bundle

    @pytest.mark.asyncio
    async def test_send_message_arguments(self, source, destination):
        relayer = make_relayer(source, destination)

        await relay_greeting(relayer)

        address, function_name, args, tx_params = source.sent[0]
        assert address == L2_INTEROP_CENTER_ADDRESS
        assert function_name == "sendMessage"
        assert args[0] == Web3.to_bytes(hexstr=encode_interop_address(2, GREET_ADDRESS))
        assert args[1] == greeting_calldata("hi")
        assert args[2] == []
        assert tx_params == TX_PARAMS

    @pytest.mark.asyncio
    async def test_execute_bundle_receives_emitted_bundle_and_proof(
        self, source, destination, sample_bundle, sample_log_proof
    ):
        relayer = make_relayer(source, destination)

        result = await relay_greeting(relayer)

        assert len(destination.sent) == 1
        address, function_name, args, tx_params = destination.sent[0]
        assert address == L2_INTEROP_HANDLER_ADDRESS
        assert function_name == "executeBundle"
        assert tx_params == TX_PARAMS

        bundle_bytes, proof = args
        assert bundle_bytes == BundleCodec.encode(sample_bundle)
        assert proof == {
            'chainId': 1,
            'l1BatchNumber': 7,
            'l2MessageIndex': 0,
            'message': {
                'txNumberInBatch': 5,
                'sender': Web3.to_checksum_address(L2_INTEROP_CENTER_ADDRESS),
                'data': b'\x01' + BundleCodec.encode(sample_bundle),
            },
            'proof': list(sample_log_proof.proof),
        }
        assert result.proof.to_contract_arg() == proof

    @pytest.mark.asyncio
    async def test_steps_poll_the_right_chains(self, source, destination):
        relayer = make_relayer(source, destination)

        await relay_greeting(relayer)

        assert source.block_queries == ["finalized", "finalized"]
        assert source.proof_queries == [("0x" + "aa" * 32, 0)] * 2
        assert destination.root_queries == [(1, 7), (1, 7)]
        assert destination.block_queries == []

    @pytest.mark.asyncio
    async def test_root_mismatch_fails_without_executing(self, source, execute_receipt):
        destination = FakeEndpoint(
            chain_id=2,
            roots={(1, 7): [ROOT_2, ROOT_1]},
            receipts={"executeBundle": execute_receipt},
        )
        relayer = make_relayer(source, destination)

        with pytest.raises(IntegrityMismatchError) as exc_info:
            await relay_greeting(relayer)

        assert exc_info.value.what == "Interop root"
        assert destination.root_queries == [(1, 7)]
        assert destination.sent == []
        assert relayer.state == RelayState.FAILED
        assert relayer.history[-2:] == [RelayState.PROOF_OBTAINED, RelayState.FAILED]

    @pytest.mark.asyncio
    async def test_root_never_appears(self, source, execute_receipt):
        destination = FakeEndpoint(chain_id=2, receipts={"executeBundle": execute_receipt})
        relayer = make_relayer(source, destination, PollPolicy(interval=0.001, timeout=0.05))

        with pytest.raises(RootNeverAppearedError):
            await relay_greeting(relayer)

        assert destination.sent == []
        assert relayer.state == RelayState.FAILED

    @pytest.mark.asyncio
    async def test_missing_bundle_event(self, bundle_receipt, destination):
        receipt = copy.deepcopy(bundle_receipt)
        receipt["logs"][0]["topics"] = [HexBytes(b"\x00" * 32)]
        source = FakeEndpoint(chain_id=1, finalized=[42], receipts={"sendMessage": receipt})
        relayer = make_relayer(source, destination)

        with pytest.raises(MissingArtifactError, match="InteropBundleSent"):
            await relay_greeting(relayer)

        assert source.block_queries == []
        assert relayer.history == [RelayState.IDLE, RelayState.FAILED]

    @pytest.mark.asyncio
    async def test_receipt_without_logs(self, bundle_receipt, destination):
        receipt = dict(bundle_receipt, logs=[])
        source = FakeEndpoint(chain_id=1, finalized=[42], receipts={"sendMessage": receipt})
        relayer = make_relayer(source, destination)

        with pytest.raises(MissingArtifactError, match="has no logs"):
            await relay_greeting(relayer)

    @pytest.mark.asyncio
    async def test_bundle_event_from_other_contract_is_ignored(self, bundle_receipt, destination):
        receipt = copy.deepcopy(bundle_receipt)
        receipt["logs"][0]["address"] = GREET_ADDRESS
        source = FakeEndpoint(chain_id=1, finalized=[42], receipts={"sendMessage": receipt})
        relayer = make_relayer(source, destination)

        with pytest.raises(MissingArtifactError):
            await relay_greeting(relayer)

    @pytest.mark.asyncio
    async def test_proof_index_without_outbound_log(self, bundle_receipt, destination):
        proof = LogProof(batch_number=7, id=1, root=Web3.to_bytes(hexstr=ROOT_1))
        source = FakeEndpoint(
            chain_id=1,
            finalized=[42],
            log_proofs=[proof],
            receipts={"sendMessage": bundle_receipt},
        )
        relayer = make_relayer(source, destination)

        with pytest.raises(MissingArtifactError, match="no outbound log at index 1"):
            await relay_greeting(relayer)

        assert destination.root_queries == []
        assert relayer.state == RelayState.FAILED

    @pytest.mark.asyncio
    async def test_outbound_log_hash_mismatch(self, bundle_receipt, sample_log_proof, destination):
        receipt = copy.deepcopy(bundle_receipt)
        receipt["l2ToL1Logs"][0]["value"] = HexBytes(b"\x99" * 32)
        source = FakeEndpoint(
            chain_id=1,
            finalized=[42],
            log_proofs=[sample_log_proof],
            receipts={"sendMessage": receipt},
        )
        relayer = make_relayer(source, destination)

        with pytest.raises(IntegrityMismatchError) as exc_info:
            await relay_greeting(relayer)

        assert exc_info.value.what == "Outbound log message hash"
        assert relayer.history[-2:] == [RelayState.FINALIZED, RelayState.FAILED]

    @pytest.mark.asyncio
    async def test_new_run_starts_from_idle(self, source, destination):
        relayer = make_relayer(source, destination)

        await relay_greeting(relayer)
        await relay_greeting(relayer)

        assert relayer.history[0] == RelayState.IDLE
        assert relayer.history.count(RelayState.EXECUTED) == 1
        assert len(source.sent) == 2

    @pytest.mark.asyncio
    async def test_receipt_without_transaction_index(self, bundle_receipt, sample_log_proof, destination):
        receipt = {k: v for k, v in bundle_receipt.items() if k not in ("l1BatchTxIndex", "transactionIndex")}
        source = FakeEndpoint(
            chain_id=1,
            finalized=[42],
            log_proofs=[sample_log_proof],
            receipts={"sendMessage": receipt},
        )
        relayer = make_relayer(source, destination)

        with pytest.raises(MissingArtifactError, match="'transactionIndex'"):
            await relay_greeting(relayer)

        assert relayer.history[-2:] == [RelayState.FINALIZED, RelayState.FAILED]
        assert destination.root_queries == []

    @pytest.mark.asyncio
    async def test_receipt_without_block_number(self, bundle_receipt, destination):
        receipt = {k: v for k, v in bundle_receipt.items() if k != "blockNumber"}
        source = FakeEndpoint(chain_id=1, finalized=[42], receipts={"sendMessage": receipt})
        relayer = make_relayer(source, destination)

        with pytest.raises(MissingArtifactError, match="'blockNumber'"):
            await relay_greeting(relayer)

        assert source.block_queries == []
        assert relayer.history == [RelayState.IDLE, RelayState.SENT, RelayState.FAILED]

    @pytest.mark.asyncio
    async def test_execute_receipt_without_hash(self, source, execute_receipt):
        receipt = {k: v for k, v in execute_receipt.items() if k != "transactionHash"}
        destination = FakeEndpoint(
            chain_id=2,
            roots={(1, 7): [ROOT_1]},
            receipts={"executeBundle": receipt},
        )
        relayer = make_relayer(source, destination)

        with pytest.raises(MissingArtifactError, match="'transactionHash'"):
            await relay_greeting(relayer)

        assert relayer.history[-2:] == [RelayState.ROOT_VERIFIED, RelayState.FAILED]

    @pytest.mark.asyncio
    async def test_cancelled_run_ends_failed(self, bundle_receipt, sample_log_proof, destination):
        source = FakeEndpoint(
            chain_id=1,
            finalized=[0],
            log_proofs=[sample_log_proof],
            receipts={"sendMessage": bundle_receipt},
        )
        relayer = make_relayer(source, destination, PollPolicy(interval=0.001, timeout=30))

        task = asyncio.create_task(relay_greeting(relayer))
        await asyncio.sleep(0.02)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert relayer.state == RelayState.FAILED
        assert relayer.history == [RelayState.IDLE, RelayState.SENT, RelayState.FAILED]


@pytest.fixture
def message_receipt():
    return {
        "transactionHash": HexBytes("0x" + "cc" * 32),
        "blockNumber": 42,
        "transactionIndex": 2,
        "status": 1,
        "logs": [],
        "l2ToL1Logs": [
            {
                "sender": L1_MESSENGER_ADDRESS,
                "key": address_word(SENDER_ADDRESS),
                "value": HexBytes(Web3.keccak(b"hello from source")),
            }
        ],
    }


class TestRelayMessage:
    """Verify path: sendToL1 on the source, inclusion check on the destination."""

    @pytest.mark.asyncio
    async def test_inclusion_confirmed(self, message_receipt, sample_log_proof):
        source = FakeEndpoint(
            chain_id=1,
            finalized=[42],
            log_proofs=[sample_log_proof],
            receipts={"sendToL1": message_receipt},
        )
        destination = FakeEndpoint(
            chain_id=2,
            roots={(1, 7): [ROOT_1]},
            call_results={"proveL2MessageInclusionShared": True},
        )
        relayer = make_relayer(source, destination)

        result = await relayer.relay_message(b"hello from source")

        assert result.state == RelayState.EXECUTED
        assert result.included is True
        assert result.execute_tx_hash is None
        assert source.sent[0][:3] == (L1_MESSENGER_ADDRESS, "sendToL1", (b"hello from source",))

        address, function_name, args = destination.calls[0]
        assert address == L2_MESSAGE_VERIFICATION_ADDRESS
        assert function_name == "proveL2MessageInclusionShared"
        assert args == (
            1,
            7,
            0,
            {
                'txNumberInBatch': 2,
                'sender': Web3.to_checksum_address(SENDER_ADDRESS),
                'data': b"hello from source",
            },
            list(sample_log_proof.proof),
        )
        assert destination.sent == []

    @pytest.mark.asyncio
    async def test_inclusion_rejected(self, message_receipt, sample_log_proof):
        source = FakeEndpoint(
            chain_id=1,
            finalized=[42],
            log_proofs=[sample_log_proof],
            receipts={"sendToL1": message_receipt},
        )
        destination = FakeEndpoint(
            chain_id=2,
            roots={(1, 7): [ROOT_1]},
            call_results={"proveL2MessageInclusionShared": False},
        )
        relayer = make_relayer(source, destination)

        with pytest.raises(InclusionRejectedError) as exc_info:
            await relayer.relay_message(b"hello from source")

        assert exc_info.value.batch_number == 7
        assert relayer.history[-2:] == [RelayState.ROOT_VERIFIED, RelayState.FAILED]

    @pytest.mark.asyncio
    async def test_receipt_without_outbound_logs(self, message_receipt):
        receipt = dict(message_receipt, l2ToL1Logs=[])
        source = FakeEndpoint(chain_id=1, finalized=[42], receipts={"sendToL1": receipt})
        destination = FakeEndpoint(chain_id=2)
        relayer = make_relayer(source, destination)

        with pytest.raises(MissingArtifactError, match="no outbound logs"):
            await relayer.relay_message(b"hello from source")

        assert source.block_queries == []


class TestFromConfig:

    def test_builds_web3_endpoints(self):
        config = RelayerConfig(
            private_key="0x" + "1" * 64,
            source_rpc_url="http://localhost:3050",
            destination_rpc_url="http://localhost:3150",
            poll_policy=POLICY,
        )

        with patch("interop_relayer.relayer.Web3Endpoint") as mock_endpoint:
            relayer = InteropRelayer.from_config(config)

        assert mock_endpoint.call_count == 2
        mock_endpoint.assert_any_call("http://localhost:3050", config.private_key)
        mock_endpoint.assert_any_call("http://localhost:3150", config.private_key)
        assert relayer.poll_policy is POLICY
        assert relayer.tx_overrides == TxOverrides()
        assert relayer.state == RelayState.IDLE
