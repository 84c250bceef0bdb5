#!/usr/bin/env python3
"""Entry point for the interop relayer.

Sends one message from the source chain and proves it on the destination
chain, either by executing the resulting bundle or by verifying the raw
message inclusion.
"""

import argparse
import asyncio
import logging
import os
import sys

from interop_relayer.config import RelayerConfig
from interop_relayer.endpoint import load_artifact
from interop_relayer.exceptions import ConfigError, RelayError
from interop_relayer.models import RelayResult
from interop_relayer.relayer import InteropRelayer
from interop_relayer.system_contracts import GREETER_ABI
from interop_relayer.utils.encoding import encode_interop_address


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# Get logger for this module
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Interop Relayer - relay a message between two chains and prove it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  PRIVATE_KEY          - Signing key used on both chains (required)
  L2_RPC_URL           - Source chain RPC endpoint (required)
  L2_RPC_URL_SECOND    - Destination chain RPC endpoint (required)
  GREET_ARTIFACT       - Greet artifact deployed as bundle target (bundle mode)
  POLL_INTERVAL        - Seconds between polls (default: 0.1)
  POLL_TIMEOUT         - Seconds per wait step (default: 60)
  LOG_LEVEL            - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--mode",
        choices=["bundle", "verify"],
        default="bundle",
        help="bundle: executeBundle on destination; verify: proveL2MessageInclusionShared"
    )
    parser.add_argument(
        "--greeting",
        default="hello from source",
        help="Greeting relayed to the target (bundle mode) or sent as raw message (verify mode)"
    )
    parser.add_argument(
        "--recipient",
        default=None,
        help="Existing target contract on the destination chain (skips Greet deployment)"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    return parser


async def run(args: argparse.Namespace, config: RelayerConfig) -> RelayResult:
    """Run one relay in the selected mode."""
    relayer = InteropRelayer.from_config(config)
    logger.info(f"Wallet: {relayer.source.address}")

    if args.mode == "verify":
        return await relayer.relay_message(args.greeting.encode())

    destination = relayer.destination
    target = args.recipient
    if not target:
        if not config.greet_artifact:
            raise ConfigError("Bundle mode needs --recipient or GREET_ARTIFACT")
        artifact = load_artifact(config.greet_artifact)
        target = destination.deploy_contract(
            artifact, "gm", tx_params=config.tx_overrides.as_tx_params()
        )
        logger.info(f"Greet deployed at: {target}")

    payload = destination.w3.eth.contract(abi=GREETER_ABI).encode_abi(
        "setGreeting", args=[args.greeting]
    )
    recipient = encode_interop_address(destination.chain_id, target)
    return await relayer.relay_bundle(recipient, payload)


async def main() -> None:
    """Main entry point for the interop relayer.

    Raises:
        SystemExit: On configuration or relay errors
    """
    args: argparse.Namespace = build_parser().parse_args()
    setup_logging(args.log_level)

    logger.info(f"=== Interop Relayer Starting ({args.mode} mode) ===")

    try:
        config: RelayerConfig = RelayerConfig.from_env()
        config.log_config()
        result = await run(args, config)
        logger.info(f"✅ Relay complete: {result.to_dict()}")

    except ConfigError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - PRIVATE_KEY: Signing key used on both chains")
        logger.error("  - L2_RPC_URL: Source chain RPC endpoint")
        logger.error("  - L2_RPC_URL_SECOND: Destination chain RPC endpoint")
        sys.exit(1)

    except RelayError as e:
        logger.error(f"❌ Relay failed ({type(e).__name__}): {e}", exc_info=True)
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
