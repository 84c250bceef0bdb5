"""
Interop relayer implementation.

This module contains the orchestrator that carries one message from the
source chain to the destination chain: send, wait for finality, wait for the
log proof, wait for the destination's copy of the proof root, then execute
or verify on the destination.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from web3 import Web3

from .config import PollPolicy, RelayerConfig, TxOverrides
from .endpoint import ChainEndpoint, Web3Endpoint
from .exceptions import InclusionRejectedError, IntegrityMismatchError, MissingArtifactError
from .models import (
    InteropBundle,
    L2Message,
    L2ToL1Log,
    LogProof,
    MessageInclusionProof,
    RelayResult,
    RelayState,
    require_field,
    tx_hash_hex,
)
from .system_contracts import (
    INTEROP_CENTER_ABI,
    INTEROP_HANDLER_ABI,
    L1_MESSENGER_ABI,
    L1_MESSENGER_ADDRESS,
    L2_INTEROP_CENTER_ADDRESS,
    L2_INTEROP_HANDLER_ADDRESS,
    L2_MESSAGE_VERIFICATION_ADDRESS,
    MESSAGE_VERIFICATION_ABI,
)
from .utils.bundle_codec import BundleCodec
from .utils.encoding import to_bytes_safe
from .waiters import await_finality, await_proof, await_root

logger = logging.getLogger(__name__)


class InteropRelayer:
    """
    Orchestrates one relay run across two chains.

    A run moves strictly forward through RelayState:
    IDLE -> SENT -> FINALIZED -> PROOF_OBTAINED -> ROOT_VERIFIED -> EXECUTED.
    Any error moves it to FAILED and is re-raised unchanged. There is no
    resume; a new run starts again from IDLE and submits a new message.
    """

    def __init__(
        self,
        source: ChainEndpoint,
        destination: ChainEndpoint,
        poll_policy: PollPolicy | None = None,
        tx_overrides: TxOverrides | None = None,
        log_index: int = 0,
    ) -> None:
        """
        Initialize the relayer.

        Args:
            source: Endpoint of the chain the message is sent from
            destination: Endpoint of the chain the message is proven on
            poll_policy: Polling schedule for every wait step
            tx_overrides: Gas settings for the two submitted transactions
            log_index: Index of the outbound log to prove within the send transaction
        """
        self.source = source
        self.destination = destination
        self.poll_policy = poll_policy or PollPolicy()
        self.tx_overrides = tx_overrides or TxOverrides()
        self.log_index = log_index
        self.state = RelayState.IDLE
        self.history: list[RelayState] = [RelayState.IDLE]

    @classmethod
    def from_config(cls, config: RelayerConfig) -> "InteropRelayer":
        """
        Create a relayer with web3 endpoints for both chains.

        Args:
            config: Loaded relayer configuration

        Returns:
            Configured InteropRelayer instance
        """
        source = Web3Endpoint(config.source_rpc_url, config.private_key)
        destination = Web3Endpoint(config.destination_rpc_url, config.private_key)
        return cls(
            source=source,
            destination=destination,
            poll_policy=config.poll_policy,
            tx_overrides=config.tx_overrides,
        )

    def _transition(self, state: RelayState) -> None:
        logger.info(f"Relay state: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _reset(self) -> None:
        self.state = RelayState.IDLE
        self.history = [RelayState.IDLE]

    def _tx_params(self) -> dict[str, int]:
        return self.tx_overrides.as_tx_params()

    @staticmethod
    def _outbound_logs(receipt: Mapping[str, Any]) -> list[Any]:
        return list(receipt.get('l2ToL1Logs') or [])

    @staticmethod
    def _tx_number_in_batch(receipt: Mapping[str, Any]) -> int:
        # Endpoints without batch metadata only report the block-level index
        value = receipt.get('l1BatchTxIndex')
        if value is None:
            value = require_field(receipt, 'transactionIndex', "Receipt")
        return int(value, 16) if isinstance(value, str) else int(value)

    def _select_outbound_log(self, receipt: Mapping[str, Any], log_proof: LogProof) -> L2ToL1Log:
        """
        Pick the outbound log the proof refers to.

        Raises:
            MissingArtifactError: If the receipt has no outbound log at the proof's index
        """
        outbound_logs = self._outbound_logs(receipt)
        if log_proof.id >= len(outbound_logs):
            raise MissingArtifactError(
                f"Receipt has no outbound log at index {log_proof.id} "
                f"({len(outbound_logs)} outbound logs present)"
            )
        return L2ToL1Log.from_receipt_entry(outbound_logs[log_proof.id])

    async def _prove(
        self,
        receipt: Mapping[str, Any],
        message_data: bytes,
    ) -> tuple[MessageInclusionProof, LogProof]:
        """
        Run the three wait steps for a sent message and build its proof record.

        Args:
            receipt: Mined receipt of the send transaction
            message_data: Bytes the source chain handed to the messenger

        Returns:
            Tuple of (proof record, raw log proof)
        """
        tx_hash = tx_hash_hex(require_field(receipt, 'transactionHash', "Receipt"))
        source_chain_id = self.source.chain_id
        block_number = int(require_field(receipt, 'blockNumber', "Receipt"))

        await await_finality(self.source, block_number, self.poll_policy)
        self._transition(RelayState.FINALIZED)

        log_proof = await await_proof(self.source, tx_hash, self.log_index, self.poll_policy)
        outbound_log = self._select_outbound_log(receipt, log_proof)

        if outbound_log.value:
            message_hash = bytes(Web3.keccak(message_data))
            if outbound_log.value != message_hash:
                raise IntegrityMismatchError(
                    "Outbound log message hash",
                    Web3.to_hex(message_hash),
                    Web3.to_hex(outbound_log.value),
                )

        proof = MessageInclusionProof(
            chain_id=source_chain_id,
            l1_batch_number=log_proof.batch_number,
            l2_message_index=log_proof.id,
            message=L2Message(
                tx_number_in_batch=self._tx_number_in_batch(receipt),
                sender=outbound_log.message_sender,
                data=message_data,
            ),
            proof=log_proof.proof,
        )
        self._transition(RelayState.PROOF_OBTAINED)

        await await_root(
            self.destination,
            source_chain_id,
            log_proof.batch_number,
            log_proof.root,
            self.poll_policy,
        )
        self._transition(RelayState.ROOT_VERIFIED)

        return proof, log_proof

    async def relay_bundle(
        self,
        recipient: str | bytes,
        payload: str | bytes,
        attributes: Sequence[bytes] = (),
    ) -> RelayResult:
        """
        Send a message through the interop center and execute its bundle on the destination.

        Args:
            recipient: Interop-encoded recipient address on the destination chain
            payload: Call data delivered to the recipient
            attributes: Encoded call/bundle attributes

        Returns:
            RelayResult in the EXECUTED state

        Raises:
            RelayError: Any fatal error from a step; the relayer is left in FAILED
        """
        self._reset()
        try:
            receipt = self.source.send_transaction(
                L2_INTEROP_CENTER_ADDRESS,
                INTEROP_CENTER_ABI,
                "sendMessage",
                to_bytes_safe(recipient),
                to_bytes_safe(payload),
                [to_bytes_safe(attribute) for attribute in attributes],
                tx_params=self._tx_params(),
            )
            send_tx_hash = tx_hash_hex(require_field(receipt, 'transactionHash', "Receipt"))
            if not receipt.get('logs'):
                raise MissingArtifactError(f"sendMessage receipt {send_tx_hash} has no logs")

            bundle: InteropBundle = BundleCodec.bundle_from_receipt(
                receipt, emitter=L2_INTEROP_CENTER_ADDRESS
            )
            logger.info(f"sendMessage tx: {send_tx_hash} block: {receipt.get('blockNumber')}")
            self._transition(RelayState.SENT)

            bundle_bytes = BundleCodec.encode(bundle)
            proof, log_proof = await self._prove(receipt, BundleCodec.message_data(bundle))

            exec_receipt = self.destination.send_transaction(
                L2_INTEROP_HANDLER_ADDRESS,
                INTEROP_HANDLER_ABI,
                "executeBundle",
                bundle_bytes,
                proof.to_contract_arg(),
                tx_params=self._tx_params(),
            )
            execute_tx_hash = tx_hash_hex(require_field(exec_receipt, 'transactionHash', "Receipt"))
            logger.info(f"executeBundle tx: {execute_tx_hash}")
            self._transition(RelayState.EXECUTED)

        except BaseException:
            self._transition(RelayState.FAILED)
            raise

        return RelayResult(
            state=self.state,
            send_tx_hash=send_tx_hash,
            log_proof=log_proof,
            proof=proof,
            execute_tx_hash=execute_tx_hash,
            bundle=bundle,
        )

    async def relay_message(self, data: str | bytes) -> RelayResult:
        """
        Send raw bytes to L1 and prove their inclusion on the destination chain.

        The destination check is a read-only call; success is a True result.

        Args:
            data: Message bytes to send

        Returns:
            RelayResult in the EXECUTED state with included=True

        Raises:
            InclusionRejectedError: If the destination verifier returns False
            RelayError: Any other fatal error; the relayer is left in FAILED
        """
        self._reset()
        message_data = to_bytes_safe(data)
        try:
            receipt = self.source.send_transaction(
                L1_MESSENGER_ADDRESS,
                L1_MESSENGER_ABI,
                "sendToL1",
                message_data,
                tx_params=self._tx_params(),
            )
            send_tx_hash = tx_hash_hex(require_field(receipt, 'transactionHash', "Receipt"))
            if not self._outbound_logs(receipt):
                raise MissingArtifactError(f"sendToL1 receipt {send_tx_hash} has no outbound logs")
            logger.info(f"sendToL1 tx: {send_tx_hash} block: {receipt.get('blockNumber')}")
            self._transition(RelayState.SENT)

            proof, log_proof = await self._prove(receipt, message_data)

            logger.info("Verifying proof on destination chain...")
            included = self.destination.call(
                L2_MESSAGE_VERIFICATION_ADDRESS,
                MESSAGE_VERIFICATION_ABI,
                "proveL2MessageInclusionShared",
                proof.chain_id,
                proof.l1_batch_number,
                proof.l2_message_index,
                proof.message.to_contract_arg(),
                list(proof.proof),
            )
            logger.info(f"Message inclusion result: {included}")
            if included is not True:
                raise InclusionRejectedError(proof.chain_id, proof.l1_batch_number, proof.l2_message_index)
            self._transition(RelayState.EXECUTED)

        except BaseException:
            self._transition(RelayState.FAILED)
            raise

        return RelayResult(
            state=self.state,
            send_tx_hash=send_tx_hash,
            log_proof=log_proof,
            proof=proof,
            included=True,
        )
