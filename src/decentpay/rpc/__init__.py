"""
Soroban RPC access: JSON-RPC transport, envelope assembly and typed methods.
"""

from decentpay.rpc.envelope import (
    AuthObligation,
    Invocation,
    Transaction,
    TransactionEnvelope,
    build_invocation,
)
from decentpay.rpc.http_client import JsonRpcClient
from decentpay.rpc.ledger_rpc import LedgerRpc, SendResult, SimulationResult, TransactionStatus

__all__ = [
    "AuthObligation",
    "Invocation",
    "JsonRpcClient",
    "LedgerRpc",
    "SendResult",
    "SimulationResult",
    "Transaction",
    "TransactionEnvelope",
    "TransactionStatus",
    "build_invocation",
]
