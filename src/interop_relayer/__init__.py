"""
Interop Relayer package.

Relays a message between two chains and proves its inclusion on the
destination against the source chain's finalized batch root.
"""

from .config import PollPolicy, RelayerConfig, TxOverrides
from .endpoint import ChainEndpoint, Web3Endpoint
from .models import InteropBundle, LogProof, RelayResult, RelayState
from .relayer import InteropRelayer
from .utils.bundle_codec import BundleCodec

__all__ = [
    "BundleCodec",
    "ChainEndpoint",
    "InteropBundle",
    "InteropRelayer",
    "LogProof",
    "PollPolicy",
    "RelayResult",
    "RelayState",
    "RelayerConfig",
    "TxOverrides",
    "Web3Endpoint",
]
__version__ = "0.1.0"
