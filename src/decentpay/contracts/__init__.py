"""
Escrow contract operations built on the codec, RPC and signing layers.
"""

from decentpay.contracts.entity_discovery import EntityDiscovery
from decentpay.contracts.entity_reader import EntityReader
from decentpay.contracts.escrow_service import (
    METHOD_SIGNATURES,
    CreatedEscrow,
    EscrowService,
    MilestoneSpec,
)
from decentpay.contracts.instance_storage import InstanceStorage
from decentpay.contracts.models import (
    Application,
    Badge,
    Escrow,
    EscrowStatus,
    Milestone,
    MilestoneStatus,
    Rating,
    RatingSummary,
)
from decentpay.contracts.transaction_lifecycle import TransactionLifecycle, TransactionOutcome

__all__ = [
    "METHOD_SIGNATURES",
    "Application",
    "Badge",
    "CreatedEscrow",
    "EntityDiscovery",
    "EntityReader",
    "Escrow",
    "EscrowService",
    "EscrowStatus",
    "InstanceStorage",
    "Milestone",
    "MilestoneSpec",
    "MilestoneStatus",
    "Rating",
    "RatingSummary",
    "TransactionLifecycle",
    "TransactionOutcome",
]
