"""
Chain endpoint abstraction for the interop relayer.

The relay only needs four capabilities from a chain: read a block, read a log
proof, make a read-only contract call and submit a transaction. ChainEndpoint
names that surface; Web3Endpoint implements it over a web3 HTTP provider.
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import RPCEndpoint, TxParams, TxReceipt

from .exceptions import MissingArtifactError, TransactionFailedError
from .models import LogProof, tx_hash_hex

logger = logging.getLogger(__name__)

LOG_PROOF_METHOD = RPCEndpoint("zks_getL2ToL1LogProof")


class ChainEndpoint(Protocol):
    """Capabilities the relay flow consumes from a chain."""

    @property
    def chain_id(self) -> int: ...

    def get_block(self, block_identifier: str | int) -> Mapping[str, Any]: ...

    def get_log_proof(self, tx_hash: str, log_index: int = 0) -> LogProof | None: ...

    def call(self, address: str, abi: list[dict[str, Any]], function_name: str, *args: Any) -> Any: ...

    def send_transaction(
        self,
        address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        *args: Any,
        tx_params: TxParams | None = None,
    ) -> Mapping[str, Any]: ...


def load_artifact(artifact_path: str | Path) -> dict[str, Any]:
    """Load a compiled contract artifact (abi + bytecode) from disk.

    Args:
        artifact_path: Path to the artifact JSON file

    Returns:
        Dictionary with 'abi' and 'bytecode' keys

    Raises:
        FileNotFoundError: If the artifact file doesn't exist
        MissingArtifactError: If the artifact lacks an abi or bytecode
    """
    path = Path(artifact_path).resolve()
    with path.open() as file:
        artifact: dict[str, Any] = json.load(file)

    bytecode = artifact.get("bytecode")
    if isinstance(bytecode, Mapping):
        bytecode = bytecode.get("object")

    if not artifact.get("abi") or not bytecode:
        raise MissingArtifactError(f"Artifact {path} must contain abi and bytecode")

    return {"abi": artifact["abi"], "bytecode": bytecode}


class Web3Endpoint:
    """
    Chain endpoint backed by web3.

    Can be used in two modes:
    1. Full mode: Initialize with RPC URL and secret for signing transactions
    2. Read-only mode: Initialize with RPC URL only for queries and calls
    """

    RECEIPT_TIMEOUT = 120  # seconds

    def __init__(self, rpc_url: str, secret: str = "", request_timeout: int = 30) -> None:
        """
        Initialize the endpoint.

        Args:
            rpc_url: RPC URL for the network (required)
            secret: Private key for signing transactions (optional - read-only without it)
            request_timeout: HTTP request timeout in seconds
        """
        if not rpc_url:
            raise ValueError("RPC URL is required")

        self.rpc_url = rpc_url
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': request_timeout}))
        self.account: LocalAccount | None = None
        self._chain_id: int | None = None

        if secret:
            self._add_signing_middleware(secret)

    def _add_signing_middleware(self, secret: str) -> None:
        """
        Add signing middleware to the Web3 instance.

        Args:
            secret: Private key for signing transactions
        """
        self.account = Account.from_key(secret)
        self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(self.account))
        self.w3.eth.default_account = self.account.address

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(self.w3.eth.chain_id)
        return self._chain_id

    @property
    def address(self) -> str | None:
        return self.account.address if self.account else None

    def get_block(self, block_identifier: str | int) -> Mapping[str, Any]:
        return self.w3.eth.get_block(block_identifier)

    def get_log_proof(self, tx_hash: str, log_index: int = 0) -> LogProof | None:
        """
        Fetch the inclusion proof of an outbound log.

        Args:
            tx_hash: Hash of the transaction that emitted the log
            log_index: Index of the log among the transaction's outbound logs

        Returns:
            The proof, or None while the node has not produced it yet
        """
        result = self.w3.manager.request_blocking(LOG_PROOF_METHOD, [tx_hash, log_index])
        if not result:
            return None
        return LogProof.from_rpc(result)

    def _contract(self, address: str, abi: list[dict[str, Any]]):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def call(self, address: str, abi: list[dict[str, Any]], function_name: str, *args: Any) -> Any:
        contract = self._contract(address, abi)
        return getattr(contract.functions, function_name)(*args).call()

    def _wait_for_success(self, tx_hash: Any, description: str) -> TxReceipt:
        receipt: TxReceipt = self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.RECEIPT_TIMEOUT
        )

        # Use walrus operator for status check
        if (status := receipt.get('status', 0)) != 1:
            logger.error(f"✗ {description} failed with status={status}")
            raise TransactionFailedError(description, tx_hash_hex(tx_hash))

        logger.info(f"✓ {description} confirmed in block {receipt['blockNumber']}")
        return receipt

    def send_transaction(
        self,
        address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        *args: Any,
        tx_params: TxParams | None = None,
    ) -> TxReceipt:
        """
        Submit a contract call as a transaction and wait for it to be mined.

        Args:
            address: Contract address
            abi: Contract ABI (only the called function is needed)
            function_name: Name of the function to call
            *args: Function arguments
            tx_params: Gas and fee overrides

        Returns:
            The mined receipt

        Raises:
            TransactionFailedError: If the transaction reverted
        """
        contract = self._contract(address, abi)
        tx_hash = getattr(contract.functions, function_name)(*args).transact(dict(tx_params or {}))
        logger.info(f"{function_name} submitted: {tx_hash_hex(tx_hash)}")
        return self._wait_for_success(tx_hash, function_name)

    def deploy_contract(
        self,
        artifact: Mapping[str, Any],
        *constructor_args: Any,
        tx_params: TxParams | None = None,
    ) -> str:
        """
        Deploy a contract from a loaded artifact.

        Args:
            artifact: Artifact with 'abi' and 'bytecode' keys
            *constructor_args: Constructor arguments
            tx_params: Gas and fee overrides

        Returns:
            Checksummed address of the deployed contract
        """
        factory = self.w3.eth.contract(abi=artifact["abi"], bytecode=artifact["bytecode"])
        tx_hash = factory.constructor(*constructor_args).transact(dict(tx_params or {}))
        receipt = self._wait_for_success(tx_hash, "Contract deployment")

        if not (address := receipt.get('contractAddress')):
            raise MissingArtifactError("Deployment receipt has no contractAddress")
        return Web3.to_checksum_address(address)
