"""
DecentPay - contract-interaction layer for a ledger-hosted escrow marketplace

Encodes call arguments into Soroban values, drives transactions from
simulation to confirmation, and decodes escrows, milestones and job
applications back into domain models.

Main Components:
- codec: LedgerValue union, XDR form and multi-shape decoding
- rpc: JSON-RPC transport, envelope assembly and typed RPC methods
- signing: external signer contract and wallet callback adapter
- contracts: entity reads, discovery, the transaction lifecycle and
  the EscrowService operations
"""

__version__ = "0.1.0"
__author__ = "DecentPay Development Team"

__all__ = []
