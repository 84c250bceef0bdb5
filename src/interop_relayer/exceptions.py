"""
Exceptions for the interop relayer.

Every error raised by the relay flow derives from RelayError. Only
TransientUnavailable is ever retried; all other kinds are fatal and
propagate to the caller untouched.
"""

from typing import Any


class RelayError(Exception):
    """Base exception for relay errors."""
    pass


class ConfigError(RelayError, ValueError):
    """Raised when a required setting is missing or malformed."""
    pass


class TransientUnavailable(RelayError):
    """Raised by a fetch closure when the data is expected but not there yet."""
    pass


class PollTimeoutError(RelayError, TimeoutError):
    """Raised when a polling budget is exhausted."""

    def __init__(self, operation: str, timeout: float, attempts: int, message: str | None = None):
        self.operation = operation
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(
            message or f"{operation} did not complete within {timeout}s ({attempts} attempts)"
        )


class RootNeverAppearedError(PollTimeoutError):
    """Raised when the interop root stays zero for the whole polling budget."""

    def __init__(self, chain_id: int, batch_number: int, timeout: float, attempts: int):
        self.chain_id = chain_id
        self.batch_number = batch_number
        super().__init__(
            operation="await_root",
            timeout=timeout,
            attempts=attempts,
            message=(
                f"Interop root for chain {chain_id} batch {batch_number} "
                f"did not become available within {timeout}s ({attempts} attempts)"
            ),
        )


class IntegrityMismatchError(RelayError):
    """Raised when an observed value conflicts with the expected one."""

    def __init__(self, what: str, expected: Any, actual: Any):
        self.what = what
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what} mismatch: expected {expected}, got {actual}")


class InclusionRejectedError(IntegrityMismatchError):
    """Raised when the destination verifier reports the message as not included."""

    def __init__(self, chain_id: int, batch_number: int, message_index: int):
        self.chain_id = chain_id
        self.batch_number = batch_number
        self.message_index = message_index
        super().__init__("message inclusion", True, False)


class MissingArtifactError(RelayError):
    """Raised when an expected event, log or field is absent from a chain response."""
    pass


class BundleDecodeError(RelayError, ValueError):
    """Raised when bundle bytes are malformed or carry an unknown version tag."""
    pass


class TransactionFailedError(RelayError):
    """Raised when a submitted transaction is mined with a failure status."""

    def __init__(self, description: str, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(f"{description} transaction {tx_hash} reverted")
