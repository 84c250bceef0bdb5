"""
Bundle encoding utilities for the interop relayer.

This module converts interop bundles to and from their canonical ABI form,
the exact bytes the source chain commits to and the destination chain
re-derives before executing. The tuple schema is fixed:

    (version, sourceChainId, destinationChainId, salt, calls[], bundleAttributes)
    call = (version, shadowAccount, to, from, value, data)
    bundleAttributes = (executionAddress, unbundlerAddress)
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from ..exceptions import BundleDecodeError, MissingArtifactError
from ..models import (
    INTEROP_BUNDLE_VERSION,
    INTEROP_CALL_VERSION,
    BundleAttributes,
    InteropBundle,
    InteropCall,
)
from ..system_contracts import INTEROP_BUNDLE_SENT_SIGNATURE, INTEROP_BUNDLE_TYPE
from .encoding import to_bytes_safe

logger = logging.getLogger(__name__)


class BundleCodec:
    """Deterministic codec for interop bundles."""

    # Prefix the interop center puts in front of the bundle bytes it sends to L1
    BUNDLE_IDENTIFIER = b'\x01'

    SUPPORTED_BUNDLE_VERSIONS = frozenset({INTEROP_BUNDLE_VERSION})
    SUPPORTED_CALL_VERSIONS = frozenset({INTEROP_CALL_VERSION})

    BUNDLE_SENT_TOPIC = bytes(Web3.keccak(text=INTEROP_BUNDLE_SENT_SIGNATURE))

    @staticmethod
    def to_abi_tuple(bundle: InteropBundle) -> tuple:
        """
        Lay out a bundle in schema order.

        Args:
            bundle: Bundle to lay out

        Returns:
            Nested tuple ready for ABI encoding
        """
        calls = [
            (
                call.version,
                call.shadow_account,
                call.to,
                call.from_address,
                call.value,
                call.data,
            )
            for call in bundle.calls
        ]
        attributes = (
            bundle.attributes.execution_address,
            bundle.attributes.unbundler_address,
        )
        return (
            bundle.version,
            bundle.source_chain_id,
            bundle.destination_chain_id,
            bundle.salt,
            calls,
            attributes,
        )

    @classmethod
    def from_abi_tuple(cls, value: Sequence[Any]) -> InteropBundle:
        """
        Build a bundle from its decoded tuple, rejecting unknown version tags.

        Raises:
            BundleDecodeError: If the tuple has the wrong shape or an unknown version
        """
        try:
            version, source_chain_id, destination_chain_id, salt, raw_calls, raw_attributes = value
        except (TypeError, ValueError) as e:
            raise BundleDecodeError(f"Malformed bundle tuple: {e}") from e

        version = to_bytes_safe(version)
        if version not in cls.SUPPORTED_BUNDLE_VERSIONS:
            raise BundleDecodeError(f"Unsupported bundle version: {Web3.to_hex(version)}")

        calls = []
        for index, raw_call in enumerate(raw_calls):
            call_version, shadow_account, to, from_address, call_value, data = raw_call
            call_version = to_bytes_safe(call_version)
            if call_version not in cls.SUPPORTED_CALL_VERSIONS:
                raise BundleDecodeError(
                    f"Unsupported call version at index {index}: {Web3.to_hex(call_version)}"
                )
            calls.append(InteropCall(
                version=call_version,
                shadow_account=bool(shadow_account),
                to=to,
                from_address=from_address,
                value=int(call_value),
                data=data,
            ))

        execution_address, unbundler_address = raw_attributes
        return InteropBundle(
            version=version,
            source_chain_id=int(source_chain_id),
            destination_chain_id=int(destination_chain_id),
            salt=salt,
            calls=tuple(calls),
            attributes=BundleAttributes(
                execution_address=execution_address,
                unbundler_address=unbundler_address,
            ),
        )

    @classmethod
    def encode(cls, bundle: InteropBundle) -> bytes:
        """
        Encode a bundle to its canonical bytes.

        Args:
            bundle: Bundle to encode

        Returns:
            ABI encoding of the bundle tuple
        """
        return encode([INTEROP_BUNDLE_TYPE], [cls.to_abi_tuple(bundle)])

    @classmethod
    def decode(cls, data: bytes | str) -> InteropBundle:
        """
        Decode canonical bundle bytes.

        Args:
            data: ABI encoding of a bundle tuple (bytes or hex string)

        Returns:
            The decoded bundle

        Raises:
            BundleDecodeError: If the bytes are malformed or the version is unknown
        """
        try:
            (value,) = decode([INTEROP_BUNDLE_TYPE], to_bytes_safe(data))
        except (DecodingError, ValueError) as e:
            raise BundleDecodeError(f"Could not decode bundle bytes: {e}") from e
        return cls.from_abi_tuple(value)

    @classmethod
    def message_data(cls, bundle: InteropBundle) -> bytes:
        """Bytes the interop center hands to the messenger for this bundle."""
        return cls.BUNDLE_IDENTIFIER + cls.encode(bundle)

    @classmethod
    def bundle_from_receipt(cls, receipt: Mapping[str, Any], emitter: str | None = None) -> InteropBundle:
        """
        Recover the bundle from the InteropBundleSent event in a receipt.

        Args:
            receipt: Mined receipt of the sendMessage transaction
            emitter: Only accept the event from this contract address (optional)

        Returns:
            The bundle exactly as it was emitted

        Raises:
            MissingArtifactError: If no InteropBundleSent event is present
        """
        for log in receipt.get('logs') or []:
            topics = log.get('topics') or []
            if not topics or to_bytes_safe(topics[0]) != cls.BUNDLE_SENT_TOPIC:
                continue
            if emitter and Web3.to_checksum_address(log['address']) != Web3.to_checksum_address(emitter):
                continue

            try:
                _, _, value = decode(
                    ['bytes32', 'bytes32', INTEROP_BUNDLE_TYPE],
                    to_bytes_safe(log['data'])
                )
            except (DecodingError, ValueError) as e:
                raise BundleDecodeError(f"Could not decode InteropBundleSent payload: {e}") from e

            bundle = cls.from_abi_tuple(value)
            logger.info(f"Found InteropBundleSent event: {bundle}")
            return bundle

        raise MissingArtifactError("InteropBundleSent event not found in receipt logs")
