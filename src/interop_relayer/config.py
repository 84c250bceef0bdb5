#!/usr/bin/env python3
"""Configuration management for the interop relayer.

This module provides type-safe configuration dataclasses with validation.
Endpoints and key material are loaded from environment variables; polling
and gas settings default to the values the relay flow was tuned with.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from .exceptions import ConfigError

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1  # seconds
DEFAULT_POLL_TIMEOUT = 60.0  # seconds


@dataclass(frozen=True, slots=True)
class PollPolicy:
    """Polling schedule shared by every waiter.

    Attributes:
        interval: Seconds between two fetch attempts
        timeout: Total budget in seconds for one wait
    """

    interval: float = DEFAULT_POLL_INTERVAL
    timeout: float = DEFAULT_POLL_TIMEOUT

    def __post_init__(self) -> None:
        """Validate polling schedule."""
        if self.interval <= 0:
            raise ConfigError(f"Poll interval must be positive, got {self.interval}")
        if self.timeout < self.interval:
            raise ConfigError(
                f"Poll timeout ({self.timeout}s) must be at least the interval ({self.interval}s)"
            )

    @property
    def max_attempts(self) -> int:
        """Number of attempts the budget allows at a steady interval."""
        return max(1, math.floor(self.timeout / self.interval))


@dataclass(frozen=True, slots=True)
class TxOverrides:
    """Fixed gas settings for the send and execute transactions."""

    gas: int = 1_000_000
    max_fee_per_gas: int = 1_000_000_000
    max_priority_fee_per_gas: int = 0

    def __post_init__(self) -> None:
        if self.gas <= 0:
            raise ConfigError(f"Gas limit must be positive, got {self.gas}")
        if self.max_priority_fee_per_gas > self.max_fee_per_gas:
            raise ConfigError("maxPriorityFeePerGas cannot exceed maxFeePerGas")

    def as_tx_params(self) -> dict[str, int]:
        return {
            'gas': self.gas,
            'maxFeePerGas': self.max_fee_per_gas,
            'maxPriorityFeePerGas': self.max_priority_fee_per_gas,
        }


def _validate_rpc_url(name: str, url: str) -> None:
    if not url:
        raise ConfigError(f"{name} environment variable is required")

    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https', 'ws', 'wss'):
        raise ConfigError(
            f"Invalid {name} scheme: {parsed.scheme}. "
            "Expected http, https, ws, or wss"
        )


def _validate_private_key(private_key: str) -> None:
    key = private_key[2:] if private_key.startswith('0x') else private_key

    if len(key) != 64:
        raise ConfigError(
            f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
        )

    try:
        int(key, 16)
    except ValueError:
        raise ConfigError("Invalid private key format. Must be hexadecimal") from None


def _float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class RelayerConfig:
    """Main configuration for the interop relayer.

    Attributes:
        private_key: Signing key used on both chains
        source_rpc_url: Endpoint of the chain the message is sent from
        destination_rpc_url: Endpoint of the chain the message is proven on
        poll_policy: Polling schedule for every wait step
        tx_overrides: Gas settings for submitted transactions
        greet_artifact: Optional path to a Greet artifact for the demo target
    """

    private_key: str
    source_rpc_url: str
    destination_rpc_url: str
    poll_policy: PollPolicy = field(default_factory=PollPolicy)
    tx_overrides: TxOverrides = field(default_factory=TxOverrides)
    greet_artifact: Path | None = None

    def __post_init__(self) -> None:
        """Validate relayer configuration."""
        if not self.private_key:
            raise ConfigError("PRIVATE_KEY environment variable is required")
        _validate_private_key(self.private_key)
        _validate_rpc_url("L2_RPC_URL", self.source_rpc_url)
        _validate_rpc_url("L2_RPC_URL_SECOND", self.destination_rpc_url)

    @classmethod
    def from_env(cls) -> "RelayerConfig":
        """Load configuration from environment variables.

        Returns:
            RelayerConfig instance with loaded values

        Raises:
            ConfigError: If required environment variables are missing or invalid
        """
        private_key = os.environ.get("PRIVATE_KEY", "")
        source_rpc_url = os.environ.get("L2_RPC_URL", "")
        destination_rpc_url = os.environ.get("L2_RPC_URL_SECOND", "")

        for name, value in (
            ("PRIVATE_KEY", private_key),
            ("L2_RPC_URL", source_rpc_url),
            ("L2_RPC_URL_SECOND", destination_rpc_url),
        ):
            if not value:
                raise ConfigError(f"{name} environment variable is required")

        poll_policy = PollPolicy(
            interval=_float_from_env("POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            timeout=_float_from_env("POLL_TIMEOUT", DEFAULT_POLL_TIMEOUT),
        )

        greet_artifact = os.environ.get("GREET_ARTIFACT")

        return cls(
            private_key=private_key,
            source_rpc_url=source_rpc_url,
            destination_rpc_url=destination_rpc_url,
            poll_policy=poll_policy,
            greet_artifact=Path(greet_artifact) if greet_artifact else None,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Interop Relayer Configuration")
        logger.info("=" * 60)
        logger.info(f"  Source RPC URL: {self.source_rpc_url}")
        logger.info(f"  Destination RPC URL: {self.destination_rpc_url}")
        logger.info(f"  Private Key: {'[SET]' if self.private_key else '[NOT SET]'}")
        logger.info(f"  Poll Interval: {self.poll_policy.interval}s")
        logger.info(f"  Poll Timeout: {self.poll_policy.timeout}s")
        logger.info(f"  Gas Limit: {self.tx_overrides.gas}")
        if self.greet_artifact:
            logger.info(f"  Greet Artifact: {self.greet_artifact}")
        logger.info("=" * 60)

