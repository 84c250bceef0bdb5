"""
Addresses and minimal ABIs of the system contracts the relay talks to.

Only the entries the relay calls or decodes are listed; full artifacts are
not needed to drive the flow.
"""

from typing import Any

L1_MESSENGER_ADDRESS = "0x0000000000000000000000000000000000008008"
L2_INTEROP_ROOT_STORAGE_ADDRESS = "0x0000000000000000000000000000000000010008"
L2_MESSAGE_VERIFICATION_ADDRESS = "0x0000000000000000000000000000000000010009"
L2_INTEROP_HANDLER_ADDRESS = "0x000000000000000000000000000000000001000d"
L2_INTEROP_CENTER_ADDRESS = "0x0000000000000000000000000000000000010010"

INTEROP_CALL_TYPE = "(bytes1,bool,address,address,uint256,bytes)"
BUNDLE_ATTRIBUTES_TYPE = "(bytes,bytes)"
INTEROP_BUNDLE_TYPE = (
    f"(bytes1,uint256,uint256,bytes32,{INTEROP_CALL_TYPE}[],{BUNDLE_ATTRIBUTES_TYPE})"
)
INTEROP_BUNDLE_SENT_SIGNATURE = f"InteropBundleSent(bytes32,bytes32,{INTEROP_BUNDLE_TYPE})"

_L2_MESSAGE_COMPONENTS: list[dict[str, Any]] = [
    {"name": "txNumberInBatch", "type": "uint16"},
    {"name": "sender", "type": "address"},
    {"name": "data", "type": "bytes"},
]

INTEROP_ROOT_STORAGE_ABI: list[dict[str, Any]] = [
    {
        "name": "interopRoots",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "chainId", "type": "uint256"},
            {"name": "batchNumber", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bytes32"}],
    }
]

INTEROP_CENTER_ABI: list[dict[str, Any]] = [
    {
        "name": "sendMessage",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {"name": "recipient", "type": "bytes"},
            {"name": "message", "type": "bytes"},
            {"name": "attributes", "type": "bytes[]"},
        ],
        "outputs": [{"name": "", "type": "bytes32"}],
    }
]

INTEROP_HANDLER_ABI: list[dict[str, Any]] = [
    {
        "name": "executeBundle",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_bundle", "type": "bytes"},
            {
                "name": "_proof",
                "type": "tuple",
                "components": [
                    {"name": "chainId", "type": "uint256"},
                    {"name": "l1BatchNumber", "type": "uint256"},
                    {"name": "l2MessageIndex", "type": "uint256"},
                    {"name": "message", "type": "tuple", "components": _L2_MESSAGE_COMPONENTS},
                    {"name": "proof", "type": "bytes32[]"},
                ],
            },
        ],
        "outputs": [],
    }
]

MESSAGE_VERIFICATION_ABI: list[dict[str, Any]] = [
    {
        "name": "proveL2MessageInclusionShared",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "_chainId", "type": "uint256"},
            {"name": "_blockOrBatchNumber", "type": "uint256"},
            {"name": "_index", "type": "uint256"},
            {"name": "_message", "type": "tuple", "components": _L2_MESSAGE_COMPONENTS},
            {"name": "_proof", "type": "bytes32[]"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    }
]

L1_MESSENGER_ABI: list[dict[str, Any]] = [
    {
        "name": "sendToL1",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_message", "type": "bytes"}],
        "outputs": [{"name": "", "type": "bytes32"}],
    }
]

GREETER_ABI: list[dict[str, Any]] = [
    {
        "name": "setGreeting",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_greeting", "type": "string"}],
        "outputs": [],
    }
]
