"""
Wait steps of the relay flow.

Each waiter is a thin fetch closure handed to PollingWaiter. Every call
carries its own PollPolicy; timeouts do not compose, so a caller holding an
outer deadline must allow each step to run its full timeout first.
"""

import logging

from web3 import Web3

from .config import PollPolicy
from .endpoint import ChainEndpoint
from .exceptions import IntegrityMismatchError, PollTimeoutError, RootNeverAppearedError
from .models import LogProof
from .system_contracts import INTEROP_ROOT_STORAGE_ABI, L2_INTEROP_ROOT_STORAGE_ADDRESS
from .utils.encoding import is_zero_digest, same_digest, to_bytes_safe
from .utils.polling_waiter import PollingWaiter

logger = logging.getLogger(__name__)


async def await_finality(endpoint: ChainEndpoint, block_number: int, policy: PollPolicy | None = None) -> None:
    """
    Block until block_number is at or below the endpoint's finalized head.

    A failed read counts as finalized height 0, so it is retried rather than
    raised. Proofs for non-finalized blocks are not stable; this must
    complete before await_proof is called for the same transaction.

    Raises:
        PollTimeoutError: If the block is not finalized within the policy timeout
    """
    def fetch() -> bool | None:
        try:
            block = endpoint.get_block("finalized")
            finalized = int(block["number"]) if block else 0
        except Exception as e:
            logger.debug(f"Finalized block read failed, treating as 0: {e}")
            finalized = 0

        if finalized >= block_number:
            return True
        logger.debug(f"Block {block_number} not finalized yet (finalized head: {finalized})")
        return None

    logger.info(f"Waiting for block {block_number} to be finalized...")
    await PollingWaiter(policy, operation="await_finality").wait(fetch)
    logger.info(f"Block {block_number} finalized")


async def await_proof(
    endpoint: ChainEndpoint,
    tx_hash: str,
    log_index: int = 0,
    policy: PollPolicy | None = None,
) -> LogProof:
    """
    Block until the endpoint serves an inclusion proof for the given log.

    Only the existence of the proof is checked here, not its contents.

    Raises:
        PollTimeoutError: If no proof is produced within the policy timeout
    """
    def fetch() -> LogProof | None:
        return endpoint.get_log_proof(tx_hash, log_index)

    logger.info(f"Waiting for log proof of {tx_hash} (log {log_index})...")
    proof: LogProof = await PollingWaiter(policy, operation="await_proof").wait(fetch)
    logger.info(f"Proof obtained: {proof}")
    return proof


async def await_root(
    destination: ChainEndpoint,
    source_chain_id: int,
    batch_number: int,
    expected_root: bytes | str,
    policy: PollPolicy | None = None,
) -> None:
    """
    Block until the destination's mirror of the source root exists and matches.

    Each attempt has three outcomes: a zero root is retried, a root equal to
    expected_root returns, and any other non-zero root fails at once without
    another read.

    Raises:
        IntegrityMismatchError: On the first non-zero root that differs from expected_root
        RootNeverAppearedError: If the root stays zero for the whole policy timeout
    """
    expected = to_bytes_safe(expected_root)

    def fetch() -> bool | None:
        root = destination.call(
            L2_INTEROP_ROOT_STORAGE_ADDRESS,
            INTEROP_ROOT_STORAGE_ABI,
            "interopRoots",
            source_chain_id,
            batch_number,
        )
        if is_zero_digest(root):
            return None
        if same_digest(root, expected):
            return True
        raise IntegrityMismatchError(
            "Interop root",
            Web3.to_hex(expected),
            Web3.to_hex(to_bytes_safe(root)),
        )

    logger.info(
        f"Waiting for interop root of chain {source_chain_id} batch {batch_number} "
        f"to become available..."
    )
    waiter: PollingWaiter[bool] = PollingWaiter(policy, operation="await_root")
    try:
        await waiter.wait(fetch)
    except IntegrityMismatchError as e:
        logger.error(f"{e} (chain {source_chain_id}, batch {batch_number})")
        raise
    except PollTimeoutError as e:
        raise RootNeverAppearedError(source_chain_id, batch_number, e.timeout, e.attempts) from e
    logger.info(f"Interop root for batch {batch_number} is available and matches")
